"""
Learner Profile Store.

The engine reads and writes profiles only through the ProfileStore
protocol:
- get(child_id) -> profile or None
- set(child_id, profile, merge=True)
- subscribe(child_id, on_data, on_error) -> unsubscribe

SqlProfileStore implements it on SQLAlchemy's async engine. Writes are
last-writer-wins; with merge=True the topic maps of the stored and new
documents are unioned (new topics win) and every other field is
replaced. Concurrent writers for one child are not reconciled.
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.errors import ProfileSchemaError, ProfileStoreError
from src.core.models import LearnerProfile
from src.db.database import _get_async_session_factory, async_session_scope
from src.db.models.profile import LearnerProfileRecord
from src.learning.profile_schema import SCHEMA_VERSION, dump_profile, load_profile

OnData = Callable[[LearnerProfile | None], Awaitable[None] | None]
OnError = Callable[[Exception], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


class ProfileStore(Protocol):
    """Persistence boundary for learner profiles."""

    async def get(self, child_id: str) -> LearnerProfile | None: ...

    async def set(self, child_id: str, profile: LearnerProfile, merge: bool = True) -> None: ...

    async def subscribe(self, child_id: str, on_data: OnData, on_error: OnError) -> Unsubscribe: ...


def merge_documents(existing: dict[str, Any] | None, incoming: dict[str, Any]) -> dict[str, Any]:
    """Top-level replace with a union of the topic maps."""
    if not existing:
        return incoming
    merged = {**existing, **incoming}
    merged["topic_mastery"] = {
        **existing.get("topic_mastery", {}),
        **incoming.get("topic_mastery", {}),
    }
    return merged


async def _call(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ListenerRegistry:
    """In-process subscribers keyed by child id."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[OnData, OnError]]] = defaultdict(list)

    def add(self, child_id: str, on_data: OnData, on_error: OnError) -> Unsubscribe:
        entry = (on_data, on_error)
        self._listeners[child_id].append(entry)

        def unsubscribe() -> None:
            listeners = self._listeners.get(child_id, [])
            if entry in listeners:
                listeners.remove(entry)

        return unsubscribe

    def count(self, child_id: str) -> int:
        return len(self._listeners.get(child_id, []))

    async def notify(self, child_id: str, profile: LearnerProfile | None) -> None:
        for on_data, on_error in list(self._listeners.get(child_id, [])):
            try:
                await _call(on_data, profile)
            except Exception as e:
                logger.warning(f"Profile listener for {child_id} failed: {e}")
                await _call(on_error, e)


class SqlProfileStore:
    """ProfileStore backed by the learner_profiles table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """
        Initialize store.

        Args:
            session_factory: Async session factory (the configured default if None)
        """
        self._session_factory = session_factory or _get_async_session_factory()
        self._listeners = ListenerRegistry()

    async def get(self, child_id: str) -> LearnerProfile | None:
        """
        Load a child's profile.

        Raises:
            ProfileStoreError: Database failure
            ProfileSchemaError: Stored document is invalid
        """
        try:
            async with async_session_scope(self._session_factory) as session:
                record = await session.get(LearnerProfileRecord, child_id)
                document = dict(record.document) if record else None
        except SQLAlchemyError as e:
            raise ProfileStoreError(f"Failed to read profile {child_id}: {e}") from e

        if document is None:
            return None
        return load_profile(document)

    async def set(self, child_id: str, profile: LearnerProfile, merge: bool = True) -> None:
        """
        Write a child's profile.

        Raises:
            ProfileStoreError: Database failure
        """
        incoming = dump_profile(profile)
        try:
            async with async_session_scope(self._session_factory) as session:
                record = await session.get(LearnerProfileRecord, child_id)
                if record is None:
                    record = LearnerProfileRecord(child_id=child_id, family_id=profile.family_id)
                    session.add(record)
                    document = incoming
                else:
                    document = merge_documents(record.document, incoming) if merge else incoming

                record.family_id = profile.family_id
                record.schema_version = SCHEMA_VERSION
                record.document = document
                record.last_updated = profile.last_updated
        except SQLAlchemyError as e:
            raise ProfileStoreError(f"Failed to write profile {child_id}: {e}") from e

        logger.debug(f"Profile {child_id} written ({len(document['topic_mastery'])} topics)")

        if self._listeners.count(child_id):
            await self._listeners.notify(child_id, load_profile(document))

    async def subscribe(self, child_id: str, on_data: OnData, on_error: OnError) -> Unsubscribe:
        """
        Watch a child's profile.

        ``on_data`` receives the current profile immediately and the stored
        profile after every write through this store.
        """
        unsubscribe = self._listeners.add(child_id, on_data, on_error)
        try:
            current = await self.get(child_id)
        except (ProfileStoreError, ProfileSchemaError) as e:
            logger.warning(f"Initial profile snapshot for {child_id} failed: {e}")
            await _call(on_error, e)
        else:
            await _call(on_data, current)
        return unsubscribe
