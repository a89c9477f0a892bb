"""Command-line helpers for Irrigation Station."""
