"""MIXCRAFT HTTP service."""
