"""Core building blocks shared by the builders and the service.

- metadata.py: record reflection, default projections and insert templates
- filters.py: condition operators and the WHERE/HAVING compiler
- parameters.py: placeholder renumbering and psycopg parameter conversion
- pagination.py: pagination request and result types
- scanner.py: result rows to records
- cache.py: thread-safe per-type caches
"""

from sqlweave.core import cache, filters, metadata, pagination, parameters, scanner

__all__ = ("cache", "filters", "metadata", "pagination", "parameters", "scanner")
