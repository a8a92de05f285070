"""I/O utilities for data paths."""

from pathlib import Path

# Project root is 4 levels up from this file
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

VALID_CATEGORIES = {"cache", "reports"}


def get_data_path(category: str = "cache") -> Path:
    """Get standardized data path.

    Args:
        category: One of 'cache' (DuckDB store) or 'reports' (accuracy exports)

    Returns:
        Path to the data directory (creates if doesn't exist)

    Example:
        >>> get_data_path("reports")
        PosixPath('.../dawnpatrol/data/reports')
    """
    if category not in VALID_CATEGORIES:
        raise ValueError(
            f"Invalid category: {category}. Must be one of {VALID_CATEGORIES}"
        )

    path = _PROJECT_ROOT / "data" / category
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_project_root() -> Path:
    """Get the project root directory."""
    return _PROJECT_ROOT
