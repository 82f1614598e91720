"""Benchmark job scheduler driven by GitHub comments."""

__version__ = "0.1.0"
