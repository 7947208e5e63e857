"""Remapping engine for HID input reports: mappings, layers, tap/hold, macros and expressions."""

__version__ = "0.1.0"

__all__ = ["bits", "engine", "expressions", "inputs", "monitor", "state", "tick", "types"]