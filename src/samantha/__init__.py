"""Samantha: a side-panel coding assistant that can act on its workspace."""

__version__ = "0.3.0"

__all__ = ["__version__"]
