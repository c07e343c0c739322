"""Benchmark summaries, regression checks, trend history and backend capability reports."""

__version__ = "0.0.1"
__all__ = ["__version__"]