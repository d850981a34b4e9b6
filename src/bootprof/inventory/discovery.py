"""
Component Inventory Discovery

Collects the component identifiers to profile from every known source, in
this order:

1. the cached compiled list (`components_cache_file`, `{"components": [...]}`)
   when `use_cache` or `only_cached` is set
2. the explicit list file (`components_file`, a JSON list)
3. application configuration (`Settings.components`)
4. package manifests: entry points in the `entry_point_group` group
5. identifiers passed on the command line

Identifiers are normalized to dotted form and deduplicated, first
occurrence wins.
"""

import json
from importlib.metadata import entry_points
from pathlib import Path
from typing import Iterable, List, Optional

from ..sandbox.host import normalize_identifier
from ..utils.config import Settings, get_settings
from ..utils.logger import get_logger

log = get_logger("Inventory")


def dedupe(identifiers: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for identifier in identifiers:
        if not isinstance(identifier, str) or not identifier.strip():
            continue
        key = normalize_identifier(identifier)
        if key not in seen:
            seen.add(key)
            result.append(key)
    return result


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def load_cached_components(path: Path) -> List[str]:
    if not path.exists():
        log.warning(f"Cache file not found: {path}")
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log.warning(f"Cache file unreadable: {path}: {e}")
        return []
    if not isinstance(data, dict) or not isinstance(data.get("components"), list):
        log.warning(f"Cache file has invalid structure: {path}")
        return []
    log.info(f"Found {len(data['components'])} component(s) from cache file")
    return data["components"]


def load_component_file(path: Path) -> List[str]:
    if not path.exists():
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            return _as_list(json.load(f))
    except (OSError, ValueError) as e:
        log.warning(f"Component list unreadable: {path}: {e}")
        return []


def load_manifest_components(group: str) -> List[str]:
    """Components advertised by installed packages."""
    components = []
    for ep in entry_points(group=group):
        components.append(ep.value)
    if components:
        log.info(f"Found {len(components)} component(s) in package manifests")
    return components


def discover_components(settings: Optional[Settings] = None, *,
                        use_cache: bool = False, only_cached: bool = False,
                        explicit: Optional[List[str]] = None) -> List[str]:
    settings = settings or get_settings()
    base = Path(settings.base_path)
    components: List[str] = []

    if use_cache or only_cached:
        components.extend(load_cached_components(base / settings.components_cache_file))

    if only_cached:
        return dedupe(components)

    components.extend(load_component_file(base / settings.components_file))
    components.extend(_as_list(settings.components))
    components.extend(load_manifest_components(settings.entry_point_group))
    components.extend(explicit or [])

    result = dedupe(components)
    log.info(f"Discovered {len(result)} unique component(s) from {len(components)} entries")
    return result
