"""Package version, kept in one place for the recorder and packaging."""

__version__ = "0.1.0"

__all__ = ["__version__"]
