"""memdex: persistent-memory retrieval for coding agents."""

__version__ = "0.1.0"
