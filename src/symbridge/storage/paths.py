"""
Filesystem locations used by symbridge.

Everything symbridge owns lives under one home directory
(``$SYMBRIDGE_HOME`` or ``~/.symbridge``). Certificate and key files are
referenced from the configuration and may live anywhere.
"""

import os
from pathlib import Path

DEFAULT_HOME = "~/.symbridge"
CONFIG_FILENAME = "config.yaml"


def get_symbridge_home() -> Path:
    """Return the home directory, honouring ``SYMBRIDGE_HOME``."""
    return Path(os.environ.get("SYMBRIDGE_HOME") or DEFAULT_HOME).expanduser().resolve()


def get_global_config_path() -> Path:
    """Return the YAML file read when no explicit ``--config`` is given."""
    return get_symbridge_home() / CONFIG_FILENAME


def expand_path(path: str | Path) -> Path:
    """
    Turn a configured key file setting into a path.

    ``~`` and ``$VARS`` are expanded in string settings, so
    ``HUBOT_SYMPHONY_PRIVATE_KEY=$HOME/certs/bot-key.pem`` works. Relative
    paths stay relative to the directory the bot was started from.
    """
    if isinstance(path, Path):
        return path.expanduser()
    return Path(os.path.expanduser(os.path.expandvars(path)))
