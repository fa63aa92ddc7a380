"""GoPuzzles: progress tracking for Go tactical puzzle collections."""

__version__ = "0.1.0"
