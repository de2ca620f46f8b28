"""pst - paste selected columns from several files, optionally reducing each row."""

__version__ = "0.1"
