"""Application package for the church discipleship-tracking backend.

This package exposes the service, repository and model modules used by
the FastAPI application. It is intentionally lightweight; individual
modules contain the concrete implementations and documentation.
"""

__version__ = "0.1.0"
