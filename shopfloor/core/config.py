from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_workdays(v: Any) -> list[int] | Any:
    if isinstance(v, str) and not v.startswith("["):
        return [int(i.strip()) for i in v.split(",") if i.strip()]
    return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "shopfloor"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    # Logging / metrics
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"
    ENABLE_METRICS: bool = False
    METRICS_PORT: int = 9108

    # Persistence
    DATABASE_URL: str = "sqlite://"
    LOG_SQL: bool = False

    # Scheduling
    RECONCILER_MAX_RETRIES: int = 3
    DONE_NOTIFICATION_QUIET_PERIOD_MINUTES: int = 15

    # Working calendar defaults (weekday 0=Sunday .. 6=Saturday)
    DEFAULT_WORKDAYS: Annotated[list[int] | str, BeforeValidator(parse_workdays)] = [
        1,
        2,
        3,
        4,
        5,
    ]
    DEFAULT_SHIFT_START: str = "08:00"
    DEFAULT_SHIFT_END: str = "17:00"
    DEFAULT_TIMEZONE: str = "UTC"

    @field_validator("RECONCILER_MAX_RETRIES")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RECONCILER_MAX_RETRIES must be at least 1")
        return v

    @field_validator("DEFAULT_WORKDAYS")
    @classmethod
    def _valid_weekdays(cls, v: list[int] | str) -> list[int]:
        if isinstance(v, str):
            raise ValueError(f"Invalid workdays: {v!r}")
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Invalid weekday: {day}. Must be 0-6 (Sunday=0)")
        return sorted(set(v))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def default_shifts(self) -> list[dict[str, str]]:
        return [{"start": self.DEFAULT_SHIFT_START, "end": self.DEFAULT_SHIFT_END}]


settings = Settings()  # type: ignore
