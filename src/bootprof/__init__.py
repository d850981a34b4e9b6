"""bootprof: per-component startup profiling for Python applications."""

__version__ = "1.0.0"
