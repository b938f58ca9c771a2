"""Agent run loop orchestration for flat task files."""

__version__ = "0.4.0"
