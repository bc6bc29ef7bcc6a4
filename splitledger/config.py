import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    groq_api_key: Optional[str] = None
    groq_model: str = DEFAULT_GROQ_MODEL
    seed_demo_data: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            groq_model=os.getenv("SPLITLEDGER_GROQ_MODEL", DEFAULT_GROQ_MODEL),
            seed_demo_data=_env_flag("SPLITLEDGER_SEED_DEMO_DATA", True),
            log_level=os.getenv("SPLITLEDGER_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
