import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from mathgen.core.retry import RetryPolicy

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.4
    database_url: str = "sqlite+aiosqlite:///./math_problems.db"

    generation_timeout: float = 20.0
    generation_max_attempts: int = 3
    generation_retry_delay: float = 0.2
    content_max_attempts: int = 2

    db_max_attempts: int = 3
    db_retry_delay: float = 0.2

    history_page_size: int = 20
    history_max_page_size: int = 100
    log_level: str = "INFO"

    generation_policy: RetryPolicy = field(init=False)
    read_policy: RetryPolicy = field(init=False)
    write_policy: RetryPolicy = field(init=False)

    def __post_init__(self):
        self.generation_policy = RetryPolicy(
            max_attempts=self.generation_max_attempts,
            base_delay=self.generation_retry_delay,
            timeout=self.generation_timeout,
        )
        self.read_policy = RetryPolicy(
            max_attempts=self.db_max_attempts, base_delay=self.db_retry_delay
        )
        self.write_policy = RetryPolicy(
            max_attempts=self.db_max_attempts, base_delay=self.db_retry_delay
        )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            openai_temperature=_env_float("OPENAI_TEMPERATURE", 0.4),
            database_url=os.getenv(
                "DATABASE_URL", "sqlite+aiosqlite:///./math_problems.db"
            ),
            generation_timeout=_env_float("GENERATION_TIMEOUT_SECONDS", 20.0),
            generation_max_attempts=_env_int("GENERATION_MAX_ATTEMPTS", 3),
            generation_retry_delay=_env_float("GENERATION_RETRY_DELAY", 0.2),
            content_max_attempts=_env_int("CONTENT_MAX_ATTEMPTS", 2),
            db_max_attempts=_env_int("DB_MAX_ATTEMPTS", 3),
            db_retry_delay=_env_float("DB_RETRY_DELAY", 0.2),
            history_page_size=_env_int("HISTORY_PAGE_SIZE", 20),
            history_max_page_size=_env_int("HISTORY_MAX_PAGE_SIZE", 100),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
