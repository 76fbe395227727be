"""FastAPI application module for RecoEngine.

This module contains the FastAPI application and route handlers that expose
the recommendation engine's in-process calls over HTTP. Routes hold no
business logic; they translate requests into engine calls.
"""
