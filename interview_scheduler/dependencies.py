"""Shared FastAPI dependencies."""

from fastapi import Request

from .integrations.calendar import CalendarClient
from .scheduling.dialogue import SessionStore


def get_calendar(request: Request) -> CalendarClient:
    """Get the calendar client from app state."""
    return request.app.state.calendar


def get_session_store(request: Request) -> SessionStore:
    """Get the conversation session store from app state."""
    return request.app.state.sessions
