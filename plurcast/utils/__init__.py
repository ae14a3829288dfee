"""Shared helpers: logging setup, private file writes, terminal detection."""
