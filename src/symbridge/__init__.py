"""
symbridge - Symphony chat-bot adapter

Connects a chat-bot host to the Symphony messaging platform: authenticates,
drains the agent datafeed, and delivers MessageML to rooms and IMs.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("symbridge")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "__version__",
]
