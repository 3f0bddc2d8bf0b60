"""Core infrastructure: settings, database engine, scheduling."""

from .db import build_engine, build_sessionmaker, get_session
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "build_engine",
    "build_sessionmaker",
    "get_session",
    "get_settings",
]
