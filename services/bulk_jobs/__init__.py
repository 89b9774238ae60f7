"""Bulk translation job service.

This service runs long bulk translation requests in the background:
- Uploading source files to Smartling
- Creating one translation job per target locale
- Polling remote progress under a bounded budget
- Aggregating partial failures into a single queryable result
"""

__version__ = "1.0.0"
