"""
Core Business Logic
==================

Core business logic modules for template rendering and batch export.

Modules:
- errors: Exception hierarchy shared by every component
- dataset: Spreadsheet import into header/row tables
- template: Template operations and template document parsing
- rendering: Content resolution, asset caching, QR encoding and compositing
- export: Archive writing and batch orchestration
- queue: Export job tracking and progress streams
- session: Editing session owning the mutable template state
"""
