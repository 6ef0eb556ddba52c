"""Exception hierarchy shared across eventdocs components."""

from __future__ import annotations


class EventDocsError(RuntimeError):
    """Base class for errors raised by the documentation pipeline."""


class ConfigError(EventDocsError):
    """Raised when configuration or generator options are invalid."""


class InputError(EventDocsError):
    """Raised when the requested input modules are missing."""


class TemplateConfigError(EventDocsError):
    """Raised when a built-in default template cannot be located."""


class ModuleLoadError(EventDocsError):
    """Raised when a module cannot be imported for introspection."""


class ModuleLoadTimeout(ModuleLoadError):
    """Raised when importing a module exceeds its deadline."""


__all__ = [
    "ConfigError",
    "EventDocsError",
    "InputError",
    "ModuleLoadError",
    "ModuleLoadTimeout",
    "TemplateConfigError",
]
