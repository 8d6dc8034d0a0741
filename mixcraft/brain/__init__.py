"""BRAIN — Progression layer: catalog, progress, merge, skills, sync."""
