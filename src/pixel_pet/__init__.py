"""Pixel Pet: a virtual pet that keeps living while you are away."""

__version__ = "0.1.0"
