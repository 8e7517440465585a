"""Command-line interface for the VDB mover."""
