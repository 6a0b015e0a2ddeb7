"""Order insights -- trend and recommendation analysis over order records."""

__version__ = "0.1.0"
