"""Core logging and diagnostics utilities."""
