"""
Export of a profile run to JSON or CSV.

The target path must resolve inside one of the allow-listed export
directories (`Settings.export_dirs`, relative to `Settings.base_path`).
Failures are returned as an unsuccessful ExportResult; the run itself is
never affected.
"""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from ..schemas import OutputFormat, ProfileResult
from ..utils.config import Settings, get_settings
from ..utils.logger import get_logger
from .render import build_metadata, render_csv

log = get_logger("Export")


class ExportResult(BaseModel):
    success: bool
    path: Optional[str] = None
    error: Optional[str] = None


def allowed_export_dirs(settings: Settings) -> List[Path]:
    base = Path(settings.base_path).resolve()
    return [(base / d).resolve() for d in settings.export_dirs]


def resolve_export_path(path: str, settings: Settings) -> Optional[Path]:
    """Resolved target path, or None when it falls outside the allow-list."""
    target = Path(path)
    real_path = target.parent.resolve() / target.name
    for allowed in allowed_export_dirs(settings):
        if real_path == allowed or real_path.is_relative_to(allowed):
            return real_path
    return None


def export_results(result: ProfileResult, fmt: OutputFormat, path: str,
                   settings: Optional[Settings] = None) -> ExportResult:
    settings = settings or get_settings()
    real_path = resolve_export_path(path, settings)
    if real_path is None:
        allowed = ", ".join(settings.export_dirs)
        message = f"Export path must be within one of: {allowed}"
        log.error(f"{message} (got {path})")
        return ExportResult(success=False, error=message)

    requested = getattr(fmt, "value", fmt)
    if requested == OutputFormat.JSON.value:
        content = json.dumps({
            "metadata": build_metadata(),
            "statistics": result.statistics.model_dump(mode="json"),
            "components": {
                name: r.model_dump(mode="json")
                for name, r in result.snapshot.components.items()
            },
        }, indent=2)
    elif requested == OutputFormat.CSV.value:
        content = render_csv(result.snapshot, result.options.memory)
    else:
        message = f"Unsupported export format: {requested}"
        log.error(message)
        return ExportResult(success=False, error=message)

    try:
        real_path.parent.mkdir(parents=True, exist_ok=True)
        real_path.write_text(content, encoding="utf-8")
    except OSError as e:
        message = f"Failed to export results to: {real_path}: {e}"
        log.error(message)
        return ExportResult(success=False, path=str(real_path), error=message)

    log.info(f"Results exported to: {real_path}")
    return ExportResult(success=True, path=str(real_path))
