"""Upstream clients shared by tool implementations."""
