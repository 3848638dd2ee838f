"""
Export Module
============

Batch export of one image per data row into a single ZIP archive.

Components:
- archive: In-memory ZIP writer with last-write-wins entries
- orchestrator: Sequential per-row rendering, naming, progress and cancellation
"""
