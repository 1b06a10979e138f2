"""Command line interface for canvas-fetch."""
