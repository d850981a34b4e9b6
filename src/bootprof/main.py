import argparse
import sys
from pathlib import Path
from typing import List, Optional
from fastapi import FastAPI
from .api.routes import router
from .controller.profile_loop import ProfileRunner
from .evaluation.export import export_results
from .evaluation.render import render, render_comparisons
from .evaluation.report import RunReport
from .inventory.discovery import discover_components
from .sandbox.host import Application, load_factory
from .schemas import OutputFormat, ProfileOptions, RunStatus, SortField
from .utils.config import get_settings
from .utils.logger import get_logger

log = get_logger("CLI")

def make_app():
    app = FastAPI(title="bootprof API")
    app.include_router(router)
    return app

# Create the app instance for uvicorn
app = make_app()

def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bootprof",
        description="Profile startup components with timing, memory usage, and diagnostic analysis",
    )
    p.add_argument("--component", action="append", default=[],
                   help="Component to profile (dotted path), repeatable")
    p.add_argument("--app", help="Dotted path to a factory returning the host Application")
    p.add_argument("--top", type=int, help="Show top N slowest components")
    p.add_argument("--threshold", type=float, help="Mark components slower than this (seconds)")
    p.add_argument("--sort", choices=[s.value for s in SortField], help="Field to sort by")
    p.add_argument("--format", choices=[f.value for f in OutputFormat], default="table",
                   help="Output format")
    p.add_argument("--export", help="Save results to file (json or csv)")
    p.add_argument("--compare", action="store_true", help="Compare with previous run")
    p.add_argument("--memory", action="store_true", help="Include memory usage")
    p.add_argument("--no-diagnostics", action="store_true", help="Skip diagnostic analysis")
    p.add_argument("--use-cache", action="store_true",
                   help="Also read components from the cached compiled list")
    p.add_argument("--only-cached", action="store_true",
                   help="Profile only components from the cached compiled list")
    p.add_argument("--dry-run", action="store_true",
                   help="Simulate profiling without actual execution")
    p.add_argument("--parallel", action="store_true",
                   help="Estimate parallel boot timing from dependencies")
    p.add_argument("--seed", type=int, help="Random seed for dry-run data")
    p.add_argument("--report-dir", help="Write charts and a Markdown report here")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p.add_argument("-v", "--verbose", action="store_true", help="Show a progress bar")
    return p

def _export_format(fmt: OutputFormat, path: str) -> OutputFormat:
    if fmt != OutputFormat.TABLE:
        return fmt
    return OutputFormat.CSV if path.lower().endswith(".csv") else OutputFormat.JSON

def _cli(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)
    settings = get_settings()

    fmt = OutputFormat(args.format)
    top = args.top or settings.top
    options = ProfileOptions(
        threshold=args.threshold if args.threshold is not None else settings.threshold,
        top=top,
        sort=SortField(args.sort or settings.sort),
        memory=args.memory,
        diagnostics=not args.no_diagnostics,
        dry_run=args.dry_run,
        parallel=args.parallel,
        compare=args.compare,
        seed=args.seed,
    )

    if not args.dry_run and not args.yes:
        answer = input("This may affect application performance. Continue? [Y/n] ")
        if answer.strip().lower() in ("n", "no"):
            return 1

    factory_path = args.app or settings.app_factory
    try:
        host = load_factory(factory_path)() if factory_path else Application()
    except Exception as e:
        log.error(f"Could not create application from {factory_path!r}: {e}")
        return 1

    inventory = discover_components(settings, use_cache=args.use_cache,
                                    only_cached=args.only_cached, explicit=args.component)
    if not inventory:
        log.error("No components found.")
        return 1

    log.info(f"Found {len(inventory)} component(s) to profile")
    if args.parallel:
        log.info("Note: Parallel timing is an estimation based on dependency analysis")

    result = ProfileRunner(host=host, settings=settings,
                           show_progress=args.verbose).run(inventory, options)
    if result.status != RunStatus.SUCCESS:
        log.error(result.error or "Profiling failed")
        return 1

    if result.comparisons is not None and fmt == OutputFormat.TABLE:
        print(render_comparisons(result.comparisons, settings.max_name_length))
        print()
    print(render(result, fmt, top, settings.max_name_length))

    if args.export:
        exported = export_results(result, _export_format(fmt, args.export), args.export, settings)
        if not exported.success:
            log.error(exported.error)

    if args.report_dir:
        RunReport(result, Path(args.report_dir), top=top,
                  max_name_length=settings.max_name_length).generate_full_report()

    if args.dry_run:
        log.warning("DRY RUN: No actual profiling was performed. Data is simulated.")
    return 0

if __name__ == "__main__":
    sys.exit(_cli())
