"""
Dataset Module
=============

Spreadsheet import into ordered header and row tables.

Components:
- importer: xlsx/csv parsing into Dataset snapshots
"""
