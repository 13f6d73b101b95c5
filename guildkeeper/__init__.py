"""Self-managed channels and self-assignable roles for Discord servers."""

__version__ = "1.0.0"
