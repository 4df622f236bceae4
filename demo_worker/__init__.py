"""Demo worker: code snippet to narrated demo video."""

__version__ = "0.1.0"
