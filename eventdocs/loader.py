"""Scoped, releasable importing of event modules for introspection."""

from __future__ import annotations

import importlib
import inspect
import pkgutil
import sys
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Callable, Dict, Iterator, List, Tuple

from .errors import ModuleLoadError, ModuleLoadTimeout
from .logging import get_logger

ARCHIVE_SUFFIXES = (".whl", ".zip")
DEFAULT_LOAD_TIMEOUT = 30.0

# Never evicted from the host, event modules import their markers from here.
_HOST_PACKAGES = frozenset({"eventdocs"})


class IsolatedImportContext:
    """Import state acquired for one module and fully released afterwards.

    While active, the module's search root is first on ``sys.path`` and host
    modules sharing a name with a module in that root are evicted, so
    co-located dependencies win. Releasing removes everything imported in the
    meantime and reinstates the host's modules and path.
    """

    def __init__(self, search_root: Path) -> None:
        self.search_root = search_root
        self.active = False
        self._saved_path: List[str] = []
        self._saved_modules: set[str] = set()
        self._evicted: Dict[str, ModuleType] = {}
        self._saved_bytecode_flag = sys.dont_write_bytecode

    def local_names(self) -> List[str]:
        """Top-level module and package names importable from the search root."""
        return sorted({info.name for info in pkgutil.iter_modules([str(self.search_root)])})

    def acquire(self) -> "IsolatedImportContext":
        if self.active:
            return self
        self._saved_path = list(sys.path)
        self._saved_bytecode_flag = sys.dont_write_bytecode
        sys.dont_write_bytecode = True

        shadowed = [name for name in self.local_names() if name not in _HOST_PACKAGES]
        for loaded in list(sys.modules):
            top_level = loaded.partition(".")[0]
            if top_level in shadowed:
                self._evicted[loaded] = sys.modules.pop(loaded)
        self._saved_modules = set(sys.modules)

        sys.path.insert(0, str(self.search_root))
        importlib.invalidate_caches()
        self.active = True
        return self

    def release(self) -> None:
        if not self.active:
            return
        for loaded in list(sys.modules):
            if loaded not in self._saved_modules:
                del sys.modules[loaded]
        sys.modules.update(self._evicted)
        self._evicted = {}
        sys.path[:] = self._saved_path
        sys.dont_write_bytecode = self._saved_bytecode_flag
        importlib.invalidate_caches()
        self.active = False

    def __enter__(self) -> "IsolatedImportContext":
        return self.acquire()

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass
class LoadedModule:
    """Types a module yielded, with what could not be loaded recorded alongside."""

    name: str
    path: Path
    search_root: Path
    modules: List[ModuleType] = field(default_factory=list)
    types: List[type] = field(default_factory=list)
    skipped_count: int = 0
    warnings: List[str] = field(default_factory=list)
    default_domain: str = ""
    context: IsolatedImportContext | None = field(default=None, repr=False, compare=False)

    @property
    def is_open(self) -> bool:
        return self.context is not None and self.context.active


class ModuleLoader:
    """Loads `.py` files, package directories and wheel/zip archives."""

    def __init__(
        self,
        timeout: float = DEFAULT_LOAD_TIMEOUT,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self.logger = get_logger("loader")

    def load(self, path: Path | str, *, timeout: float | None = None) -> LoadedModule:
        """Import `path` inside a fresh isolated context.

        The returned handle keeps the context active until `close` is called.
        The context is released before any exception leaves this method.
        """
        path = Path(path).expanduser().resolve()
        if not path.exists():
            raise ModuleLoadError(f"Module path does not exist: {path}")

        name, search_root, top_level = self._layout(path)
        context = IsolatedImportContext(search_root)
        handle = LoadedModule(name=name, path=path, search_root=search_root, context=context)
        deadline = self._clock() + (timeout if timeout is not None else self.timeout)

        context.acquire()
        try:
            if top_level is None:
                top_level = context.local_names()
            self._import_all(handle, top_level, deadline, strict=path.suffix == ".py")
            handle.types = self._collect_types(handle.modules)
            handle.default_domain = self._default_domain(handle)
        except BaseException:
            context.release()
            raise

        self.logger.debug(
            "Loaded %s: %d module(s), %d type(s), %d skipped",
            name,
            len(handle.modules),
            len(handle.types),
            handle.skipped_count,
        )
        return handle

    def close(self, handle: LoadedModule) -> None:
        if handle.context is not None:
            handle.context.release()

    @contextmanager
    def open(self, path: Path | str, *, timeout: float | None = None) -> Iterator[LoadedModule]:
        handle = self.load(path, timeout=timeout)
        try:
            yield handle
        finally:
            self.close(handle)

    def _layout(self, path: Path) -> Tuple[str, Path, List[str] | None]:
        if path.is_file() and path.suffix == ".py":
            return path.stem, path.parent, [path.stem]
        if path.is_file() and path.suffix.lower() in ARCHIVE_SUFFIXES:
            name = path.name.split("-", 1)[0] if path.suffix.lower() == ".whl" else path.stem
            return name, path, None
        if path.is_dir() and (path / "__init__.py").exists():
            return path.name, path.parent, [path.name]
        if path.is_dir():
            return path.name, path, None
        raise ModuleLoadError(f"Unsupported module path: {path}")

    def _import_all(self, handle: LoadedModule, names: List[str], deadline: float, *, strict: bool) -> None:
        if not names:
            raise ModuleLoadError(f"No importable modules found in {handle.path}")
        for name in names:
            try:
                self._import_tree(handle, name, deadline)
            except ModuleLoadTimeout:
                raise
            except (Exception, SystemExit) as exc:
                if strict or len(names) == 1:
                    raise ModuleLoadError(f"Failed to import {name}: {exc}") from exc
                self._skip(handle, name, exc)
        if not handle.modules:
            raise ModuleLoadError(f"No module in {handle.path} could be imported")

    def _import_tree(self, handle: LoadedModule, name: str, deadline: float) -> None:
        module = self._import_with_deadline(handle, name, deadline)
        handle.modules.append(module)
        search_path = getattr(module, "__path__", None)
        if search_path is None:
            return
        for info in sorted(pkgutil.iter_modules(search_path), key=lambda item: item.name):
            qualified = f"{name}.{info.name}"
            try:
                self._import_tree(handle, qualified, deadline)
            except ModuleLoadTimeout:
                raise
            except (Exception, SystemExit) as exc:
                self._skip(handle, qualified, exc)

    def _import_with_deadline(self, handle: LoadedModule, name: str, deadline: float) -> ModuleType:
        """Import `name` on a worker thread, giving up once `deadline` passes.

        A worker still running at the deadline is abandoned. It is a daemon
        thread, so it never holds up interpreter shutdown.
        """
        self._check_deadline(handle, deadline)
        outcome: Future = Future()

        def run() -> None:
            if not outcome.set_running_or_notify_cancel():
                return
            try:
                outcome.set_result(importlib.import_module(name))
            except BaseException as exc:
                outcome.set_exception(exc)

        worker = threading.Thread(target=run, name=f"eventdocs-import-{name}", daemon=True)
        worker.start()
        try:
            module = outcome.result(timeout=max(deadline - self._clock(), 0.0))
        except FutureTimeoutError:
            if outcome.done():
                # the module itself raised TimeoutError
                raise
            self.logger.warning("Abandoning import of %s after its time limit", name)
            raise ModuleLoadTimeout(f"Loading {handle.name} exceeded its time limit while importing {name}") from None
        self._check_deadline(handle, deadline)
        return module

    def _skip(self, handle: LoadedModule, name: str, exc: BaseException) -> None:
        message = f"{handle.name}: skipped {name} ({exc.__class__.__name__}: {exc})"
        handle.skipped_count += 1
        handle.warnings.append(message)
        self.logger.warning(message)

    def _check_deadline(self, handle: LoadedModule, deadline: float) -> None:
        if self._clock() > deadline:
            raise ModuleLoadTimeout(f"Loading {handle.name} exceeded its time limit")

    @staticmethod
    def _collect_types(modules: List[ModuleType]) -> List[type]:
        collected: List[Tuple[str, int, str, type]] = []
        for module in modules:
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if getattr(obj, "__module__", None) != module.__name__:
                    continue
                collected.append((module.__name__, definition_line(obj), obj.__qualname__, obj))
        collected.sort(key=lambda item: item[:3])
        return [item[3] for item in collected]

    @staticmethod
    def _default_domain(handle: LoadedModule) -> str:
        for module in handle.modules:
            declared = getattr(module, "__default_domain__", None)
            if isinstance(declared, str) and declared.strip():
                return declared.strip()
            domain = getattr(declared, "domain", None)
            if isinstance(domain, str) and domain.strip():
                return domain.strip()
        return handle.name.split(".")[0]


def definition_line(cls: type) -> int:
    line = getattr(cls, "__firstlineno__", None)
    if isinstance(line, int):
        return line
    try:
        return inspect.getsourcelines(cls)[1]
    except (OSError, TypeError):
        return 0


__all__ = [
    "ARCHIVE_SUFFIXES",
    "DEFAULT_LOAD_TIMEOUT",
    "IsolatedImportContext",
    "LoadedModule",
    "ModuleLoader",
    "definition_line",
]
