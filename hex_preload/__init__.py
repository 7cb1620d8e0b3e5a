"""hex-preload: fetch, extract and cache Hex.pm source packages for a compiler."""

__version__ = "0.1.0"
