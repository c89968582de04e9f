import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple


def _origins(raw: str) -> Tuple[str, ...]:
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@dataclass(frozen=True)
class Settings:
    """Server settings, read from the environment"""
    host: str = "0.0.0.0"
    port: int = 8080
    # Empty means any origin may open a websocket
    allowed_origins: Tuple[str, ...] = field(default_factory=tuple)
    outbound_queue_size: int = 256
    max_message_size: int = 500 * 1024 * 1024
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "8080")),
            allowed_origins=_origins(os.environ.get("ALLOWED_ORIGINS", "")),
            outbound_queue_size=int(os.environ.get("OUTBOUND_QUEUE_SIZE", "256")),
            max_message_size=int(os.environ.get("MAX_MESSAGE_SIZE", str(500 * 1024 * 1024))),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def origin_allowed(self, origin) -> bool:
        if not self.allowed_origins:
            return True
        return origin in self.allowed_origins


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
