# api/routes.py
import threading
from fastapi import APIRouter, HTTPException
from .. import __version__
from ..schemas import ProfileRequest, ProfileResult
from ..controller.profile_loop import run_profile
from ..inventory.discovery import dedupe, discover_components
from ..utils.config import get_settings
from ..utils.logger import get_logger

log = get_logger("API")

router = APIRouter()

# Profiling touches process-wide state (memory tracing, the comparison cache)
_run_lock = threading.Lock()

@router.get("/healthz")
async def health_check():
    log.info("Health check request received")
    return {
        "status": "healthy",
        "service": "bootprof",
        "version": __version__
    }

@router.post("/profile", response_model=ProfileResult)
def profile(request: ProfileRequest) -> ProfileResult:
    log.info(f"=== API Request Received: {len(request.components)} component(s) ===")
    log.info(f"Options: {request.options.model_dump_json()}")

    settings = get_settings()
    requested = dedupe(request.components)
    allowed = set(discover_components(settings))
    unknown = [c for c in requested if c not in allowed]
    if unknown:
        log.warning(f"Rejected components outside the inventory: {unknown}")
        raise HTTPException(status_code=422,
                            detail={"error": "Components are not in the configured inventory",
                                    "components": unknown})

    with _run_lock:
        result = run_profile(requested, request.options, settings=settings)
    log.info(f"Profile run finished with status {result.status.value}")
    return result
