import os
from dataclasses import dataclass, fields

from dotenv import load_dotenv

MiB = 1024 * 1024

# Block blob limits of the backing store.
MAX_BLOCK_SIZE = 4 * MiB
MAX_BLOCK_COUNT = 50_000
MAX_SINGLE_PUT_SIZE = 64 * MiB

ENV_PREFIX = "BLOCKUPLOAD_"


@dataclass(frozen=True)
class UploadConfig:
    """
    Tunables for block uploads.

    ``max_single_put_size`` is the hard limit for a single-shot put and
    ``multipart_threshold`` is the size above which an unspecified strategy
    switches to multipart. They default to the same value but are separate.
    """

    max_block_size: int = MAX_BLOCK_SIZE
    max_block_count: int = MAX_BLOCK_COUNT
    max_single_put_size: int = MAX_SINGLE_PUT_SIZE
    multipart_threshold: int = MAX_SINGLE_PUT_SIZE
    max_in_flight: int = 4
    max_attempts: int = 3
    retry_backoff: float = 0.5

    def __post_init__(self) -> None:
        if self.max_block_size <= 0:
            raise ValueError("max_block_size must be positive")
        if self.max_block_size > MAX_BLOCK_SIZE:
            raise ValueError(
                f"max_block_size {self.max_block_size} exceeds store limit {MAX_BLOCK_SIZE}"
            )
        if self.max_block_count <= 0:
            raise ValueError("max_block_count must be positive")
        if self.max_single_put_size < 0 or self.multipart_threshold < 0:
            raise ValueError("size thresholds must not be negative")
        if self.max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.retry_backoff < 0:
            raise ValueError("retry_backoff must not be negative")

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "UploadConfig":
        """
        Build a config from environment variables (and a .env file, if any).
        Unset variables keep their defaults, e.g. BLOCKUPLOAD_MAX_IN_FLIGHT=8.
        """
        load_dotenv()
        overrides: dict[str, int | float] = {}
        for f in fields(cls):
            raw = os.environ.get(f"{prefix}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                overrides[f.name] = float(raw) if f.type is float else int(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {prefix}{f.name.upper()}: {raw!r}") from e
        return cls(**overrides)
