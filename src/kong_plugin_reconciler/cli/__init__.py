"""Command-line interface for the Kong plugin reconciler."""
