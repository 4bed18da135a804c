"""CSV-driven file and directory-tree migration with permission propagation."""

__version__ = "0.1.0"
