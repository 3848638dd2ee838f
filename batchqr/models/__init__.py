"""
Data Models
===========

Pydantic models for templates, datasets, QR configuration and API payloads.
"""
