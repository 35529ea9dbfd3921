"""Anonymous confessions API with server-side content moderation."""

__version__ = "1.0.0"
