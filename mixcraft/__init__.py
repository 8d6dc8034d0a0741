"""MIXCRAFT — Evaluation & progression engine for ear training."""

__version__ = "0.1.0"
