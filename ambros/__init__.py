"""Command objects that record, inspect, export, import, chain and replay shell commands."""

__version__ = "3.0.0"