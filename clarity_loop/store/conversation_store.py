"""In-memory ConversationContext store with async-safe access and TTL expiry.

Design notes:
    - An asyncio.Lock guards the index so concurrent request handlers never
      corrupt it.  Each conversation additionally gets its own session lock;
      the orchestrator holds it for the whole turn, so turns within one
      conversation are strictly sequential while separate conversations
      proceed independently.
    - Conversations follow a lifecycle: active → archived (terminal state)
      → expired.  Archived conversations keep their history readable but
      accept no further turns.
    - Durability is optional: an injected ConversationRepository receives
      every saved context and is consulted on a miss.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional, Protocol

from clarity_loop.domain.conversation import ConversationContext
from clarity_loop.domain.enums import ConversationState, Mode
from clarity_loop.errors import ContextLost
from clarity_loop.foundation.clock import idle_for

logger = logging.getLogger(__name__)


class ConversationRepository(Protocol):
    """Protocol for durable conversation persistence."""

    def save(self, ctx: ConversationContext) -> None:
        ...

    def load(self, context_id: str) -> Optional[ConversationContext]:
        ...


class ConversationStore:
    """Async-safe, in-memory store for conversation contexts.

    Args:
        ttl: How long a conversation may stay idle before it is forgotten.
        repository: Optional durable backing store.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=60),
        repository: ConversationRepository | None = None,
    ) -> None:
        self._ttl = ttl
        self._repository = repository
        self._active: dict[str, ConversationContext] = {}
        self._archived: dict[str, ConversationContext] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    # ── Public API ───────────────────────────────────────────────────────

    async def create(self, mode: Mode = Mode.CHALLENGE) -> ConversationContext:
        ctx = ConversationContext(mode=mode)
        async with self._lock:
            self._active[ctx.id] = ctx
            self._session_locks[ctx.id] = asyncio.Lock()
        logger.info("Created conversation %s (mode=%s)", ctx.id, mode.value)
        return ctx

    async def get(self, context_id: str) -> ConversationContext:
        """Return an open conversation.

        Raises:
            ContextLost: The id is unknown, expired, or already closed.
        """
        async with self._lock:
            ctx = self._active.get(context_id)
            if ctx is None:
                if context_id in self._archived:
                    raise ContextLost(context_id, "closed")
                ctx = self._load(context_id)
            if ctx is None:
                raise ContextLost(context_id, "unknown")
            if ctx.is_closed:
                raise ContextLost(context_id, "closed")
            if self._is_expired(ctx):
                self._remove(context_id)
                raise ContextLost(context_id, "expired")
            return ctx

    async def get_any(self, context_id: str) -> ConversationContext:
        """Return a conversation whether it is open or archived."""
        async with self._lock:
            ctx = self._active.get(context_id) or self._archived.get(context_id)
            if ctx is None:
                ctx = self._load(context_id)
            if ctx is None:
                raise ContextLost(context_id, "unknown")
            return ctx

    def session(self, context_id: str) -> asyncio.Lock:
        """Lock serialising the turns of one conversation."""
        return self._session_locks.setdefault(context_id, asyncio.Lock())

    async def save(self, ctx: ConversationContext) -> None:
        """Record the context after a turn; closed contexts are archived."""
        async with self._lock:
            if ctx.is_closed:
                self._active.pop(ctx.id, None)
                self._archived[ctx.id] = ctx
                logger.info("Archived conversation %s (%s)", ctx.id, ctx.state.value)
            else:
                self._active[ctx.id] = ctx
        if self._repository is not None:
            self._repository.save(ctx)

    async def discard(self, context_id: str) -> ConversationContext:
        """Close a conversation at the caller's request."""
        ctx = await self.get(context_id)
        ctx.state = ConversationState.RESTARTED
        await self.save(ctx)
        return ctx

    async def expire_stale(self) -> list[str]:
        """Forget conversations idle for longer than the TTL."""
        async with self._lock:
            expired_ids = [
                cid for cid, ctx in {**self._active, **self._archived}.items()
                if self._is_expired(ctx)
            ]
            for cid in expired_ids:
                self._remove(cid)
            if expired_ids:
                logger.info("Expired %d stale conversation(s)", len(expired_ids))
            return expired_ids

    async def active_count(self) -> int:
        async with self._lock:
            return len(self._active)

    async def archived_count(self) -> int:
        async with self._lock:
            return len(self._archived)

    # ── Internals ────────────────────────────────────────────────────────

    def _is_expired(self, ctx: ConversationContext) -> bool:
        return idle_for(ctx.last_updated) > self._ttl

    def _load(self, context_id: str) -> Optional[ConversationContext]:
        """Must be called while holding self._lock."""
        if self._repository is None:
            return None
        ctx = self._repository.load(context_id)
        if ctx is None:
            return None
        if ctx.is_closed:
            self._archived[ctx.id] = ctx
            return ctx
        self._active[ctx.id] = ctx
        logger.info("Restored conversation %s from repository", ctx.id)
        return ctx

    def _remove(self, context_id: str) -> None:
        """Must be called while holding self._lock."""
        self._active.pop(context_id, None)
        self._archived.pop(context_id, None)
        self._session_locks.pop(context_id, None)
