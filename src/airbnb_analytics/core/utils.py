import os
from pathlib import Path


def get_base_path() -> Path:
    """
    Get the base path that relative project paths are resolved against.

    Returns:
        Path: AIRBNB_PROJECT_ROOT if set, else the current working directory.
    """
    return Path(os.getenv("AIRBNB_PROJECT_ROOT", "."))


def resolve_path(relative_path: str | Path) -> Path:
    """
    Resolve a project path.

    Absolute paths are returned unchanged; relative paths are rooted at
    the project base path.

    Args:
        relative_path: The path to resolve (e.g., 'warehouse')

    Returns:
        Path: Absolute or base-rooted path.
    """
    path = Path(relative_path)
    if path.is_absolute():
        return path
    return get_base_path() / path


def env_path(variable: str, default: str) -> Path:
    """Resolve a directory from an environment variable with a fallback."""
    return resolve_path(os.getenv(variable, default))
