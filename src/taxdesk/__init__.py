"""Tax period and document posting engine."""

__version__ = "0.1.0"
