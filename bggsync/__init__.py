"""bggsync - BoardGameGeek collection and play history synchronization."""

__version__ = "0.1.0"
