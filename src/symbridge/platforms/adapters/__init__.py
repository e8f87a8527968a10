"""Platform adapter implementations."""

from symbridge.platforms.adapters.symphony import AdapterOptions, SymphonyAdapter

__all__ = [
    "AdapterOptions",
    "SymphonyAdapter",
]
