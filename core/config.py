"""
Application configuration using Pydantic Settings
"""

from pydantic import ByteSize, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings
from typing import Optional

from core.exceptions import InputError


class Settings(BaseSettings):
    """Importer settings with environment variable support (IMPORTER_ prefix)"""

    # Remote endpoint
    URL: str = "http://localhost:7700"
    API_KEY: Optional[str] = None
    REQUEST_TIMEOUT: float = 300.0

    # Environment
    LOG_LEVEL: str = "INFO"

    # Batching and concurrency
    BATCH_SIZE: ByteSize = ByteSize(90 * 1000 * 1000)
    JOBS: int = 1
    CHANNEL_CAPACITY: int = 100

    # Retry policy
    MAX_ATTEMPTS: int = 20
    MIN_BACKOFF: float = 0.1
    MAX_BACKOFF: float = 3600.0
    BACKOFF_JITTER: float = 0.3

    class Config:
        env_file = ".env"
        env_prefix = "IMPORTER_"
        case_sensitive = True
        extra = "ignore"


_byte_size = TypeAdapter(ByteSize)


def parse_byte_size(value: str) -> int:
    """
    Parse a human readable size such as ``"20 MB"`` or ``"512KiB"``.

    Decimal units (kB, MB, GB) are powers of 1000, binary units
    (KiB, MiB, GiB) powers of 1024. A bare number is a byte count.
    """
    try:
        size = int(_byte_size.validate_python(value))
    except ValidationError as e:
        raise InputError(
            f"Invalid byte size: {value!r}",
            context={"value": value},
            original_exception=e
        )
    if size <= 0:
        raise InputError("Batch size must be positive", context={"value": value})
    return size


settings = Settings()
