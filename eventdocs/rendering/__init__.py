"""Template-driven rendering of event and schema documents."""

from .renderer import (
    DEFAULT_TEMPLATES_DIRECTORY,
    SCHEMAS_DIRECTORY,
    TEMPLATE_FILES,
    TemplateRenderer,
    copy_default_templates,
)

__all__ = [
    "DEFAULT_TEMPLATES_DIRECTORY",
    "SCHEMAS_DIRECTORY",
    "TEMPLATE_FILES",
    "TemplateRenderer",
    "copy_default_templates",
]
