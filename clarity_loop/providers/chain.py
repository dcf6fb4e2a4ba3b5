"""ProviderChain — ordered fallback across text-understanding providers.

Providers are tried in registration order; the first that returns a parse
wins.  When every provider fails, ParseDegraded is raised and the caller
continues with a degraded parse instead of aborting.
"""

from __future__ import annotations

import logging

from clarity_loop.domain.request import ParsedRequest
from clarity_loop.errors import ParseDegraded
from clarity_loop.providers.base import TextUnderstandingProvider

logger = logging.getLogger(__name__)


class ProviderStats:
    """Per-provider parse statistics for observability."""

    __slots__ = ("provider_name", "accepted_count", "failed_count")

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        self.accepted_count: int = 0
        self.failed_count: int = 0

    def to_dict(self) -> dict:
        return {
            "provider_name": self.provider_name,
            "accepted_count": self.accepted_count,
            "failed_count": self.failed_count,
        }


class ProviderChain:
    """Registry of providers with fallback and stats tracking.

    Usage:
        chain = ProviderChain()
        chain.register(GeminiProvider())
        chain.register(KeywordProvider())

        parsed = chain.parse(raw_text)
    """

    def __init__(self) -> None:
        self._providers: list[TextUnderstandingProvider] = []
        self._stats: dict[str, ProviderStats] = {}

    def register(self, provider: TextUnderstandingProvider) -> None:
        self._providers.append(provider)
        self._stats[provider.name] = ProviderStats(provider.name)
        logger.info("Registered text provider: %s", provider.name)

    def parse(self, raw_text: str) -> ParsedRequest:
        """Parse *raw_text* with the first provider that succeeds.

        Raises:
            ParseDegraded: If no provider is registered or all of them fail.
        """
        for provider in self._providers:
            stats = self._stats[provider.name]
            try:
                parsed = provider.parse(raw_text)
            except Exception as exc:
                stats.failed_count += 1
                logger.warning("Provider '%s' failed: %s", provider.name, exc)
                continue
            stats.accepted_count += 1
            return parsed

        raise ParseDegraded(
            f"No provider could parse the request ({len(self._providers)} tried)"
        )

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    @property
    def stats(self) -> list[dict]:
        return [s.to_dict() for s in self._stats.values()]
