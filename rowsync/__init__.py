"""RowSync: reconcile automation events with rows in a Google Sheets tab."""

__version__ = "1.0.0"
