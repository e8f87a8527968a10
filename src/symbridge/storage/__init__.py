"""Storage utilities for symbridge."""

from symbridge.storage.paths import (
    expand_path,
    get_global_config_path,
    get_symbridge_home,
)

__all__ = [
    "expand_path",
    "get_global_config_path",
    "get_symbridge_home",
]
