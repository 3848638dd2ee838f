"""
Queue Module
===========

In-process export job tracking.

Components:
- task_manager: Export jobs as asyncio tasks with status, progress streams and cancellation
"""
