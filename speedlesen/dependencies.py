"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Request

from speedlesen.store import StoreFacade


def get_store(request: Request) -> StoreFacade:
    """
    Return the store handle created once in ``create_app`` so every request
    shares the same backend.
    """
    return request.app.state.store
