"""ChatPye: ask questions about a YouTube video and get streamed answers."""

__version__ = "0.1.0"
