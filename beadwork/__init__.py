"""File-backed issue tracking with statuses, dependencies, labels and comments."""

__version__ = "0.1.0"

__all__ = ["models", "treefs", "store", "tracker"]