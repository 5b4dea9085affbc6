"""FastAPI dependencies: backend clients, session context and open screens."""

import logging
from functools import lru_cache
from typing import Callable, Optional

import httpx
from fastapi import Depends, Header

from cleanerapp.config import settings
from cleanerapp.database import SessionLocal
from cleanerapp.errors import AuthError
from cleanerapp.schemas.auth import SessionContext
from cleanerapp.services.auth import CleanerAuth, StoreFactory
from cleanerapp.services.identity import IdentityProvider
from cleanerapp.services.job_session import JobDetailSession, ScreenRegistry
from cleanerapp.services.lifecycle import JobLifecycleManager
from cleanerapp.services.object_store import ObjectStore
from cleanerapp.services.photo_upload import PhotoUploadPipeline
from cleanerapp.services.queries import JobQueries
from cleanerapp.services.sql_store import SqlStore
from cleanerapp.services.store import RelationalStore, RestStore

logger = logging.getLogger(__name__)

ObjectStoreFactory = Callable[[SessionContext], ObjectStore]


@lru_cache
def get_http_client() -> httpx.Client:
    """One pooled HTTP client shared by all backend clients."""
    return httpx.Client(timeout=settings.HTTP_TIMEOUT)


@lru_cache
def get_registry() -> ScreenRegistry:
    return ScreenRegistry()


def build_store(session: SessionContext) -> RelationalStore:
    """Relational store acting as the session's subject."""
    if settings.STORE_BACKEND == "sql":
        return SqlStore(SessionLocal)
    if settings.STORE_BACKEND != "rest":
        raise RuntimeError(f"Unsupported STORE_BACKEND: {settings.STORE_BACKEND}")
    return RestStore(access_token=session.access_token, client=get_http_client())


def build_object_store(session: SessionContext) -> ObjectStore:
    return ObjectStore(access_token=session.access_token, client=get_http_client())


def get_store_factory() -> StoreFactory:
    return build_store


def get_object_store_factory() -> ObjectStoreFactory:
    return build_object_store


def get_identity() -> IdentityProvider:
    # Session memory in the provider is per caller, so each request gets its own
    return IdentityProvider(client=get_http_client())


def get_auth(
    identity: IdentityProvider = Depends(get_identity),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> CleanerAuth:
    return CleanerAuth(identity, store_factory)


def get_session_context(
    authorization: Optional[str] = Header(default=None),
    identity: IdentityProvider = Depends(get_identity),
) -> SessionContext:
    """Resolve the bearer token to the signed-in subject."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Sign in to continue.")
    return identity.get_user(token.strip())


def get_queries(
    session: SessionContext = Depends(get_session_context),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> JobQueries:
    return JobQueries(store_factory(session), session)


def open_screen(
    job_id: str,
    session: SessionContext,
    store_factory: StoreFactory,
    object_store_factory: ObjectStoreFactory,
    registry: ScreenRegistry,
) -> JobDetailSession:
    """Create, load and register a fresh screen for a job."""
    store = store_factory(session)
    screen = JobDetailSession(
        job_id,
        queries=JobQueries(store, session),
        lifecycle=JobLifecycleManager(store, session),
        uploader=PhotoUploadPipeline(store, object_store_factory(session)),
    )
    screen.load()
    return registry.open(session.user_id, screen)


def get_screen(
    job_id: str,
    session: SessionContext = Depends(get_session_context),
    store_factory: StoreFactory = Depends(get_store_factory),
    object_store_factory: ObjectStoreFactory = Depends(get_object_store_factory),
    registry: ScreenRegistry = Depends(get_registry),
) -> JobDetailSession:
    """The open screen for a job, opening it if needed."""
    screen = registry.get(session.user_id, job_id)
    if screen is None or screen.closed:
        screen = open_screen(job_id, session, store_factory, object_store_factory, registry)
    return screen


def get_fresh_screen(
    job_id: str,
    session: SessionContext = Depends(get_session_context),
    store_factory: StoreFactory = Depends(get_store_factory),
    object_store_factory: ObjectStoreFactory = Depends(get_object_store_factory),
    registry: ScreenRegistry = Depends(get_registry),
) -> JobDetailSession:
    """A newly loaded screen for a job, replacing any open one."""
    return open_screen(job_id, session, store_factory, object_store_factory, registry)
