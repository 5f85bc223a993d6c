"""Stream model completions and sandboxed scripts into Discord messages."""

__version__ = "0.1.0"
