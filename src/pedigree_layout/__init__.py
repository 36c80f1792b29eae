"""Stable, collision-free layouts for incrementally expanded pedigree trees."""

__version__ = "0.1.0"
