import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from environment variables."""

    environment: str = "development"
    data_dir: Path = Path("./data").resolve()
    max_file_size: int = 10 * 1024 * 1024
    cleanup_delay_sec: float = 5.0
    sweep_interval_sec: float = 60 * 60
    max_file_age_hours: float = 24.0
    host: str = "0.0.0.0"
    port: int = 8080
    reload: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("DOC_SERVICE_ENV", "development").strip().lower(),
            data_dir=Path(os.getenv("DATA_DIR", "./data")).resolve(),
            max_file_size=int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024))),
            cleanup_delay_sec=float(os.getenv("CLEANUP_DELAY_SEC", "5")),
            sweep_interval_sec=float(os.getenv("SWEEP_INTERVAL_SEC", "3600")),
            max_file_age_hours=float(os.getenv("MAX_FILE_AGE_HOURS", "24")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8080")),
            reload=_env_bool("RELOAD", "true"),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def incoming_dir(self) -> Path:
        return self.data_dir / "incoming"

    @property
    def outgoing_dir(self) -> Path:
        return self.data_dir / "outgoing"

    @property
    def max_file_age_sec(self) -> float:
        return self.max_file_age_hours * 60 * 60


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
