"""
Template Module
==============

Template editing operations and template document parsing.

Components:
- operations: Add, update, delete and reorder elements of a Template snapshot
- parser: JSON/YAML template document parsing and serialization
"""
