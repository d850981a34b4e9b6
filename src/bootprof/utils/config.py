from functools import lru_cache
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from ..schemas import SortField

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOOTPROF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    threshold: float = 0.01              # seconds; boundary for "slow"
    top: int = 20
    sort: SortField = SortField.TOTAL
    cache_ttl_hours: int = 24
    max_name_length: int = 50
    log_dir: str = "logs"
    cache_dir: str = ".bootprof/cache"
    base_path: str = "."
    export_dirs: List[str] = Field(default_factory=lambda: ["storage", "tests", "reports"])
    components: List[str] = Field(default_factory=list)
    components_file: str = "bootstrap/components.json"
    components_cache_file: str = "bootstrap/cache/components.json"
    entry_point_group: str = "bootprof.components"
    app_factory: Optional[str] = None

@lru_cache
def get_settings() -> Settings:
    return Settings()  # env vars automatically picked up
