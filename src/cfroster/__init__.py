"""cfroster - Codeforces roster administration and profile synchronization."""

__version__ = "0.1.0"


def get_version() -> str:
    """Return the installed package version."""
    return __version__
