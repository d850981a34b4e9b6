# sandbox/host.py
"""
Minimal host application: a service container plus the component lifecycle
(`register` then `boot`). Profiled applications either use it directly or
expose a factory returning a configured instance (see `--app`).
"""
import importlib
import inspect
import typing
from typing import Any, Callable, Dict, List, Optional

from ..utils.logger import get_logger

log = get_logger("Host")


class ComponentResolutionError(Exception):
    """Raised when a component identifier cannot be turned into an instance."""


def normalize_identifier(identifier: str) -> str:
    """`pkg.mod:Class` and `pkg.mod.Class` name the same component."""
    return identifier.strip().replace(":", ".")


def load_class(identifier: str) -> type:
    identifier = identifier.strip()
    if ":" in identifier:
        module_name, _, attr_path = identifier.partition(":")
    else:
        module_name, _, attr_path = identifier.rpartition(".")
    if not module_name or not attr_path:
        raise ComponentResolutionError(f"Invalid component identifier: {identifier!r}")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ComponentResolutionError(f"Cannot import module {module_name!r}: {e}") from e

    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ComponentResolutionError(f"{identifier!r} not found: {e}") from e
    if not inspect.isclass(obj):
        raise ComponentResolutionError(f"{identifier!r} is not a class")
    return obj


def load_factory(path: str) -> Callable[[], "Application"]:
    module_name, _, attr = path.replace(":", ".").rpartition(".")
    return getattr(importlib.import_module(module_name), attr)


class Component:
    """Base class for startup components.

    Subclasses override `register()` and optionally `boot()`. Both hooks may
    declare annotated parameters; the application injects them.
    """

    deferred: bool = False

    def __init__(self, app: "Application"):
        self.app = app

    def register(self) -> None:
        pass

    def is_deferred(self) -> bool:
        return self.deferred

    def provides(self) -> List[str]:
        return []

    @classmethod
    def dependencies(cls) -> Optional[list]:
        """Declared dependency list; None means "inspect the hook signatures"."""
        return None


class Application:
    """Service container with annotation-driven injection."""

    def __init__(self):
        self._factories: Dict[Any, Callable[["Application"], Any]] = {}
        self._shared: Dict[Any, bool] = {}
        self._instances: Dict[Any, Any] = {}
        self.instance(Application, self)

    def bind(self, abstract: Any, factory: Callable[["Application"], Any]) -> None:
        self._factories[abstract] = factory
        self._shared[abstract] = False

    def singleton(self, abstract: Any, factory: Callable[["Application"], Any]) -> None:
        self._factories[abstract] = factory
        self._shared[abstract] = True

    def instance(self, abstract: Any, obj: Any) -> Any:
        self._instances[abstract] = obj
        return obj

    def bound(self, abstract: Any) -> bool:
        return abstract in self._instances or abstract in self._factories

    def make(self, abstract: Any) -> Any:
        if abstract in self._instances:
            return self._instances[abstract]
        if abstract in self._factories:
            obj = self._factories[abstract](self)
            if self._shared[abstract]:
                self._instances[abstract] = obj
            return obj
        if inspect.isclass(abstract):
            return self.build(abstract)
        raise ComponentResolutionError(f"Nothing bound for {abstract!r}")

    def build(self, cls: type) -> Any:
        return cls(**self._resolve_arguments(cls.__init__, skip_first=True))

    def call(self, fn: Callable) -> Any:
        return fn(**self._resolve_arguments(fn))

    def _resolve_arguments(self, fn: Callable, skip_first: bool = False) -> Dict[str, Any]:
        if fn is object.__init__:
            return {}
        try:
            hints = typing.get_type_hints(fn)
        except Exception:
            hints = {}
        params = list(inspect.signature(fn).parameters.values())
        if skip_first:
            params = params[1:]
        kwargs = {}
        for param in params:
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = hints.get(param.name)
            if annotation is not None and self.bound(annotation):
                kwargs[param.name] = self.make(annotation)
            elif param.default is not param.empty:
                continue
            elif inspect.isclass(annotation) and annotation.__module__ != "builtins":
                kwargs[param.name] = self.make(annotation)
            else:
                raise ComponentResolutionError(
                    f"Unresolvable parameter {param.name!r} of {getattr(fn, '__qualname__', fn)}"
                )
        return kwargs

    # ------------------------------------------------------------------ #
    # Component lifecycle
    # ------------------------------------------------------------------ #
    def resolve_component(self, identifier: str) -> Any:
        cls = load_class(identifier)
        if issubclass(cls, Component):
            return cls(self)
        return self.build(cls)

    def register_component(self, identifier: str) -> Any:
        component = self.resolve_component(identifier)
        self.call(component.register)
        return component

    def boot_component(self, component: Any) -> None:
        boot = getattr(component, "boot", None)
        if callable(boot):
            self.call(boot)
