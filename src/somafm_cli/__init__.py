"""Command line client for SomaFM internet radio."""

__version__ = "0.4.0"

__all__ = ["__version__"]
