"""HTTP surface for the query engine."""

from .server import QueryRequest, create_app

__all__ = ['QueryRequest', 'create_app']
