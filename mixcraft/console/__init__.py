"""CONSOLE — Dynamics math shared by scoring and playback."""
