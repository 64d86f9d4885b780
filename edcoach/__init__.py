"""
Core package for the student coaching assistant.

Kept import-light so scripts can read the version without pulling in DSPy.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("edcoach")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
