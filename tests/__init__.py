"""
Test Suite
==========

Test suite matching the batchqr/ package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: API endpoint testing through the FastAPI test client
"""
