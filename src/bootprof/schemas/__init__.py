"""
bootprof.schemas  •  Pydantic-v2 data contracts
-----------------------------------------------
These classes are the interface by which the analyzers, the profile loop,
the renderers and the FastAPI layer exchange data.  `ComponentRecord` is
mutated in place while a run is in progress; everything handed to
presentation, export or comparison afterwards is treated as read-only.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ConfigDict

SCHEMA_VERSION = "1.0.0"
PERCENTILE_RANKS = (50, 75, 90, 95, 99, 100)

# --------------------------------------------------------------------------- #
# 🔸 Enumerations
# --------------------------------------------------------------------------- #
class SortField(str, Enum):
    TOTAL     = "total"
    REGISTER  = "register"
    BOOT      = "boot"
    MEMORY    = "memory"
    PARALLEL  = "parallel"

    @property
    def record_field(self) -> str:
        return {
            SortField.TOTAL:    "total_time",
            SortField.REGISTER: "register_time",
            SortField.BOOT:     "boot_time",
            SortField.MEMORY:   "total_memory",
            SortField.PARALLEL: "parallel_estimate",
        }[self]


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON  = "json"
    CSV   = "csv"


class RunStatus(str, Enum):
    SUCCESS        = "success"
    NO_COMPONENTS  = "no_components"


class DiagnosticTag(str, Enum):
    # signature tags
    FILESYSTEM      = "filesystem"
    HTTP            = "http"
    CONFIG          = "config"
    CONTAINER       = "container"
    DATABASE        = "database"
    CACHE           = "cache"
    EVENT           = "event"
    QUEUE           = "queue"
    DEFERRED        = "deferred"
    BROADCAST       = "broadcast"
    MAIL            = "mail"
    NOTIFICATION    = "notification"
    SESSION         = "session"
    VALIDATION      = "validation"
    TEMPLATE        = "template"
    ROUTE           = "route"
    AUTH            = "auth"
    LOG             = "log"
    REDIS           = "redis"
    SUBPROCESS      = "subprocess"
    DYNAMIC_IMPORT  = "dynamic_import"
    # composite heuristics
    COUNT_IN_LOOP       = "count_in_loop"
    POTENTIAL_N1_QUERY  = "potential_n1_query"
    # analysis failures
    NO_SOURCE          = "no_source"
    EMPTY_SOURCE       = "empty_source"
    REFLECTION_FAILED  = "reflection_failed"


# --------------------------------------------------------------------------- #
# 🔸 Per-component data
# --------------------------------------------------------------------------- #
class Dependency(BaseModel):
    model_config = ConfigDict(frozen=True)

    type_name: str
    param_name: str
    optional: bool = False


class PhaseTiming(BaseModel):
    """Outcome of one timed lifecycle call."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    duration: float                  = Field(0.0, ge=0.0, description="Seconds")
    memory_delta: int                = Field(0, description="Bytes, negative when memory was freed")
    success: bool                    = True
    result: Any                      = Field(None, exclude=True)
    error: Optional[str]             = None


class ComponentRecord(BaseModel):
    """Everything measured for one component during a run."""
    model_config = ConfigDict(validate_assignment=True)

    register_time: Optional[float]   = Field(None, ge=0.0)
    boot_time: Optional[float]       = Field(None, ge=0.0)
    total_time: Optional[float]      = Field(None, ge=0.0)
    register_memory: int             = 0
    boot_memory: int                 = 0
    total_memory: int                = 0
    is_deferred: bool                = False
    provides: List[str]              = Field(default_factory=list)
    diagnostics: Optional[List[str]] = None
    dependencies: Optional[List[Dependency]] = None
    register_error: Optional[str]    = None
    boot_error: Optional[str]        = None
    error: Optional[str]             = None
    # run-level figures, identical on every record of a run
    parallel_estimate: Optional[float] = None
    sequential_time: Optional[float]   = None
    potential_speedup: Optional[float] = None

    def value(self, field: str) -> float:
        """Numeric field with missing values read as zero."""
        return getattr(self, field) or 0

    def errors(self) -> List[str]:
        return [e for e in (self.error, self.register_error, self.boot_error) if e]


class RunSnapshot(BaseModel):
    """All component records of one invocation, in presentation order."""
    components: Dict[str, ComponentRecord]  = Field(default_factory=dict)
    created_at: datetime                    = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc),
    )
    schema_version: str                     = SCHEMA_VERSION

    def __len__(self) -> int:
        return len(self.components)


# --------------------------------------------------------------------------- #
# 🔸 Derived figures
# --------------------------------------------------------------------------- #
class Aggregate(BaseModel):
    sum: float                       = 0.0
    mean: float                      = 0.0
    median: float                    = 0.0
    percentiles: Dict[int, float]    = Field(default_factory=dict)


class ParallelEstimate(BaseModel):
    parallel_time: float             = 0.0
    sequential_time: float           = 0.0
    speedup: float                   = 1.0


class RunStatistics(BaseModel):
    total_components: int            = 0
    deferred_components: int         = 0
    successful_components: int       = 0
    failed_components: int           = 0
    slow_components: List[str]       = Field(default_factory=list)
    total_time: Optional[float]      = None
    avg_time: Optional[float]        = None
    median_time: Optional[float]     = None
    percentiles: Optional[Dict[int, float]] = None
    total_register_time: Optional[float]    = None
    avg_register_time: Optional[float]      = None
    total_boot_time: Optional[float]        = None
    avg_boot_time: Optional[float]          = None
    total_memory_bytes: Optional[int]       = None
    total_memory_mb: Optional[float]        = None
    avg_memory_kb: Optional[float]          = None
    peak_memory_mb: Optional[float]         = None


class ComparisonEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str
    previous: float
    current: float
    delta: float
    percent_delta: float


# --------------------------------------------------------------------------- #
# 🔸 Run envelope
# --------------------------------------------------------------------------- #
class ProfileOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threshold: float                 = Field(0.01, ge=0.0)
    top: int                         = Field(20, ge=1)
    sort: SortField                  = SortField.TOTAL
    memory: bool                     = False
    diagnostics: bool                = True
    dry_run: bool                    = False
    parallel: bool                   = False
    compare: bool                    = False
    seed: Optional[int]              = None


class ProfileRequest(BaseModel):
    """Inbound object for FastAPI /profile."""
    model_config = ConfigDict(extra="forbid")

    components: List[str]
    options: ProfileOptions          = Field(default_factory=ProfileOptions)


class ProfileResult(BaseModel):
    """Outbound object of a profiling run."""
    status: RunStatus
    options: ProfileOptions
    snapshot: RunSnapshot            = Field(default_factory=RunSnapshot)
    statistics: RunStatistics        = Field(default_factory=RunStatistics)
    comparisons: Optional[List[ComparisonEntry]] = None
    error: Optional[str]             = None
