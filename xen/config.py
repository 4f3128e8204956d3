"""
Runtime configuration for xen.

Version constants and environment-driven settings (fail-fast policy, heap sizing).
"""

from dataclasses import dataclass
from typing import Mapping, Optional
import os


VER_MAJOR = 0
VER_MINOR = 3
__version__ = f"{VER_MAJOR}.{VER_MINOR}.0"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide xen settings.

    Attributes:
        fail_fast: Abort the process on invariant violations instead of raising
        heap_size: Initial size in bytes of the default heap
        max_heap_size: Upper bound the default heap may grow to
    """
    fail_fast: bool = False
    heap_size: int = 1024 * 1024
    max_heap_size: int = 1024 * 1024 * 1024

    def __post_init__(self) -> None:
        """Validate sizes."""
        if self.heap_size <= 0 or self.heap_size % 8 != 0:
            raise ValueError(f"Heap size must be a positive multiple of 8, got {self.heap_size}")
        if self.max_heap_size < self.heap_size:
            raise ValueError(
                f"Max heap size {self.max_heap_size} is smaller than heap size {self.heap_size}"
            )
        if self.max_heap_size >= 2 ** 31:
            raise ValueError(f"Max heap size must fit in i32 addressing, got {self.max_heap_size}")


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}: {raw!r}. Must be one of {_TRUE_VALUES + _FALSE_VALUES}")


def _parse_size(name: str, raw: str) -> int:
    try:
        return int(raw.strip(), 0)
    except ValueError as e:
        raise ValueError(f"Invalid {name}: {raw!r}. Must be an integer byte count") from e


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    Recognised variables: XEN_FAIL_FAST, XEN_HEAP_SIZE, XEN_MAX_HEAP_SIZE.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Parsed settings
    """
    env = os.environ if environ is None else environ
    defaults = Settings()

    fail_fast = defaults.fail_fast
    if "XEN_FAIL_FAST" in env:
        fail_fast = _parse_bool("XEN_FAIL_FAST", env["XEN_FAIL_FAST"])

    heap_size = defaults.heap_size
    if env.get("XEN_HEAP_SIZE"):
        heap_size = _parse_size("XEN_HEAP_SIZE", env["XEN_HEAP_SIZE"])

    max_heap_size = defaults.max_heap_size
    if env.get("XEN_MAX_HEAP_SIZE"):
        max_heap_size = _parse_size("XEN_MAX_HEAP_SIZE", env["XEN_MAX_HEAP_SIZE"])

    return Settings(fail_fast=fail_fast, heap_size=heap_size, max_heap_size=max_heap_size)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return cached settings, loading them from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read settings from the environment."""
    global _settings
    _settings = load_settings()
    return _settings
