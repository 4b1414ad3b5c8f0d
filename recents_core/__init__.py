"""Recent conversations core: index, previews and history backfill."""

__version__ = "0.1.0"
