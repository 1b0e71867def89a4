from pathlib import Path
import os

from cmdclock import __version__

CMDCLOCK_VERSION = __version__

CONFIG_FILENAME = "cmdclock.toml"


def config_home() -> Path:
    """
    Directory holding the per-user config file (XDG aware).
    """
    base = os.getenv("XDG_CONFIG_HOME")
    if base:
        return Path(base) / "cmdclock"
    return Path.home() / ".config" / "cmdclock"


def data_home() -> Path:
    """
    Directory holding the history database (XDG aware).
    """
    base = os.getenv("XDG_DATA_HOME")
    if base:
        return Path(base) / "cmdclock"
    return Path.home() / ".local" / "share" / "cmdclock"


def find_config_path(start_path: Path | None = None) -> Path | None:
    """
    Locate cmdclock.toml: CMDCLOCK_CONFIG, then the working directory, then the user config dir.
    """
    explicit = os.getenv("CMDCLOCK_CONFIG")
    if explicit:
        return Path(explicit).expanduser()

    if start_path is None:
        start_path = Path(".")
    local = start_path.resolve() / CONFIG_FILENAME
    if local.is_file():
        return local

    user = config_home() / CONFIG_FILENAME
    if user.is_file():
        return user

    return None
