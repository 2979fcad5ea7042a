"""Book configuration loading and chapter preprocessing for markdown books."""

__version__ = "0.1.0"

__all__ = ["__version__"]