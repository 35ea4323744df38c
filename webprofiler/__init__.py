"""HTTP(S) latency profiling client."""

__version__ = "0.1.0"
