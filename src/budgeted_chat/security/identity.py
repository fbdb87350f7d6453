"""Resolution of the acting user's identity."""

import getpass


def get_os_username() -> str:
    """Login name of the user running the process ("" if it cannot be determined)."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No USER/LOGNAME variable and no passwd entry (e.g. some containers).
        return ""
