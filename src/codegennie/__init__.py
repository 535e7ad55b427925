"""CodeGennie: an AI coding assistant session for the terminal."""

__version__ = "0.1.0"

__all__ = ["__version__"]
