"""LinkSnap: URL shortener backend with click analytics."""

__version__ = "0.1.0"
