"""Observability for the HTTP layer.

Structured logging (structlog with request-scoped contextvars), the response
pipeline middleware, in-memory request/error totals, and process memory sampling.
"""
