"""
QueryPilot

Natural-language questions over a tenant's relational data, answered by a
streamed multi-stage pipeline (intent, query, execution, charts, summary).
"""

__version__ = "0.1.0"
