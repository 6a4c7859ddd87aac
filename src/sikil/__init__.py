"""sikil: keep agent skill directories in sync with one managed repository."""

__version__ = "0.4.0"
