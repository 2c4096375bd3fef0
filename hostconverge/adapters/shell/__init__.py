"""Subprocess execution and tool-backed adapter helpers."""
