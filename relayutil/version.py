"""Version of the relay utilities."""

_VERSION = "0.58.1"


def full() -> str:
    """Return the full version string."""
    return _VERSION