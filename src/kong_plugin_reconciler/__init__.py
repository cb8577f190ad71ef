"""Reconcile declared Kong plugin attachments against the Kong Admin API."""

__version__ = "0.1.0"
