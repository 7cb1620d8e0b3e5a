"""CLI command groups for hex-preload."""

__all__ = [
    "cache",
    "config",
    "preload",
]
