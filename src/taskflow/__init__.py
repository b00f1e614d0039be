"""taskflow: hierarchical tasks with time tracking."""

__version__ = "0.3.0"
