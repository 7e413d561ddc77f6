import os
import re

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

_INTEGER = re.compile(r"^-?\d+$")

_ENV_NAMES = {
    "cache_ttl_ms": "PYLON_CACHE_TTL",
    "max_cache_size": "PYLON_MAX_CACHE_SIZE",
    "max_retries": "PYLON_MAX_RETRIES",
    "retry_base_delay_ms": "PYLON_RETRY_BASE_DELAY",
}


def parse_env_int(name: str, value: str | None) -> int | None:
    """Parse an integer environment value, rejecting partial numbers like "5000ms"."""
    if value is None:
        return None
    if not _INTEGER.match(value.strip()):
        raise ValueError(
            f'Invalid {name} value: "{value}". '
            'Must be a valid integer (e.g., "5000", "0", "-1").'
        )
    return int(value.strip())


class Settings(BaseModel):
    # Pylon API
    pylon_api_token: str = Field(default="", alias="PYLON_API_TOKEN")
    pylon_base_url: str = Field(
        default="https://api.usepylon.com", alias="PYLON_BASE_URL"
    )

    # Response cache (milliseconds, 0 disables)
    cache_ttl_ms: int = Field(default=30000, alias="PYLON_CACHE_TTL")
    max_cache_size: int = Field(default=1000, alias="PYLON_MAX_CACHE_SIZE")

    # Retries (0 disables)
    max_retries: int = Field(default=3, alias="PYLON_MAX_RETRIES")
    retry_base_delay_ms: int = Field(default=1000, alias="PYLON_RETRY_BASE_DELAY")

    debug: bool = Field(default=False, alias="PYLON_DEBUG")

    @field_validator(
        "cache_ttl_ms",
        "max_cache_size",
        "max_retries",
        "retry_base_delay_ms",
        mode="before",
    )
    @classmethod
    def _strict_int(cls, value, info):
        if isinstance(value, str):
            return parse_env_int(_ENV_NAMES[info.field_name], value)
        return value

    @field_validator("max_cache_size")
    @classmethod
    def _positive_cache_size(cls, value: int) -> int:
        # The cache is switched off through PYLON_CACHE_TTL, never through its size
        if value < 1:
            raise ValueError(
                f'Invalid PYLON_MAX_CACHE_SIZE value: "{value}". '
                'Must be a positive integer (e.g., "1000").'
            )
        return value

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {
            field.alias: env[field.alias]
            for field in cls.model_fields.values()
            if field.alias in env
        }
        return cls.model_validate(values)


global_settings = Settings.from_env()
