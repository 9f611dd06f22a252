"""Student and book records backend.

The package exposes a JSON-file document store, repositories for the two
collections, a signed access-token service and the FastAPI application
that ties them together. Individual modules contain the concrete
implementations and documentation.
"""
