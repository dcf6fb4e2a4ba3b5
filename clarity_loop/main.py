"""clarity-loop — clarification-loop engine for ambiguous requests.

This is the application entry point.  It wires the text-understanding
providers, ConversationStore, ConversationOrchestrator, and REST
endpoints together.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI

from clarity_loop.api.conversations import create_conversation_router
from clarity_loop.config import settings
from clarity_loop.core.orchestrator import ConversationOrchestrator
from clarity_loop.knowledge.tables import load_tables
from clarity_loop.providers.chain import ProviderChain
from clarity_loop.providers.gemini import GeminiProvider
from clarity_loop.providers.keyword import KeywordProvider
from clarity_loop.store.conversation_store import ConversationStore

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

# ── Knowledge ────────────────────────────────────────────────────────────────

tables = load_tables(settings.knowledge_path)

# ── Providers ────────────────────────────────────────────────────────────────

providers = ProviderChain()
if settings.parser_backend == "gemini":
    providers.register(GeminiProvider())
providers.register(KeywordProvider(tables))

# ── State ────────────────────────────────────────────────────────────────────

store = ConversationStore(ttl=timedelta(minutes=settings.conversation_ttl_minutes))

orchestrator = ConversationOrchestrator(providers, store=store, tables=tables)

# ── App ──────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Clarity analysis, clarifying questions and structured intent synthesis",
    version="0.1.0",
)

# ── Routes ───────────────────────────────────────────────────────────────────

app.include_router(create_conversation_router(orchestrator))


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/health")
async def health() -> dict:
    expired = await store.expire_stale()
    return {
        "status": "ok",
        "active_conversations": await store.active_count(),
        "archived_conversations": await store.archived_count(),
        "expired_now": len(expired),
        "providers": providers.stats,
    }
