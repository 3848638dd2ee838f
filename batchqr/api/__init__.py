"""
REST API
========

FastAPI application exposing editing sessions, previews and export jobs.
"""
