"""HTTP surface of the allocation core."""

__version__ = "1.0.0"
