"""Construction of the per-process services and their FastAPI dependencies."""

import logging

from fastapi import Request

from minimalblog.config import Settings
from minimalblog.services.local_storage import LocalKeyValueStore
from minimalblog.services.realtime_db import RealtimeDatabase
from minimalblog.services.repository import BlogRepository
from minimalblog.services.storage import LocalStore, RemoteStore
from minimalblog.services.workflow import AdminSessions

logger = logging.getLogger(__name__)


def create_repository(settings: Settings) -> BlogRepository:
    """Wire the local store and, when configured, the realtime database.

    A malformed database URL is logged and treated as no remote store.
    """
    local = LocalStore(LocalKeyValueStore(settings.local_storage_path))
    remote = None
    if settings.firebase_database_url:
        try:
            db = RealtimeDatabase(
                settings.firebase_database_url,
                auth_token=settings.firebase_auth_token,
                timeout=settings.store_timeout_seconds,
            )
            remote = RemoteStore(db, settings.blogs_collection)
        except ValueError as e:
            logger.warning("Ignoring realtime database config: %s", e)
    return BlogRepository(local, remote, atomic_upvotes=settings.atomic_upvotes)


def get_repository(request: Request) -> BlogRepository:
    return request.app.state.repository


def get_admin_sessions(request: Request) -> AdminSessions:
    return request.app.state.admin_sessions
