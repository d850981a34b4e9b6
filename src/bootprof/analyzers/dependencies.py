# analyzers/dependencies.py
import inspect
import typing
from typing import Any, List, Optional, Tuple
from .base import Analyzer
from ..schemas import Dependency
from ..sandbox.host import load_class

LIFECYCLE_HOOKS = ("register", "boot")
_NONE_TYPE = type(None)


def qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _unwrap(annotation: Any) -> Tuple[Optional[type], bool]:
    """Return (class, admits_none) for `X` or `Optional[X]`; class is None otherwise."""
    args = typing.get_args(annotation)
    if args and _NONE_TYPE in args:
        rest = [a for a in args if a is not _NONE_TYPE]
        if len(rest) == 1 and inspect.isclass(rest[0]):
            return rest[0], True
        return None, True
    if inspect.isclass(annotation) and not typing.get_origin(annotation):
        return annotation, False
    return None, False


class DependencyExtractor(Analyzer):
    """Lists the types a component's lifecycle hooks ask to be injected with."""

    def __init__(self):
        super().__init__("DependencyExtractor")

    def run(self, identifier: str) -> List[Dependency]:
        return self.extract(identifier)

    def extract(self, identifier: str) -> List[Dependency]:
        try:
            cls = load_class(identifier)
            declared = self._declared(cls)
            if declared is not None:
                return declared
            return self._from_signatures(cls)
        except Exception as e:
            self.log.warning(f"Dependency extraction failed for {identifier}: {type(e).__name__}: {e}")
            return []

    def _declared(self, cls: type) -> Optional[List[Dependency]]:
        describe = getattr(cls, "dependencies", None)
        if not callable(describe):
            return None
        declared = describe()
        if declared is None:
            return None

        deps = []
        for i, entry in enumerate(declared):
            if isinstance(entry, Dependency):
                deps.append(entry)
            elif isinstance(entry, dict):
                deps.append(Dependency.model_validate(entry))
            elif inspect.isclass(entry):
                deps.append(Dependency(type_name=qualified_name(entry), param_name=f"dep{i}"))
            else:
                deps.append(Dependency(type_name=str(entry).replace(":", "."), param_name=f"dep{i}"))
        return deps

    def _from_signatures(self, cls: type) -> List[Dependency]:
        deps = []
        for hook_name in LIFECYCLE_HOOKS:
            hook = getattr(cls, hook_name, None)
            if not callable(hook):
                continue
            hints = typing.get_type_hints(hook)
            for param in inspect.signature(hook).parameters.values():
                if param.name in ("self", "cls") or param.name not in hints:
                    continue
                dep_cls, admits_none = _unwrap(hints[param.name])
                if dep_cls is None or dep_cls.__module__ == "builtins":
                    continue
                deps.append(Dependency(
                    type_name=qualified_name(dep_cls),
                    param_name=param.name,
                    optional=admits_none or param.default is not param.empty,
                ))
        return deps
