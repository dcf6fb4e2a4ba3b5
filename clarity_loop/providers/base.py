"""Abstract base for text-understanding providers.

A provider turns raw request text into the ParsedRequest contract.  It is
a capability boundary: the core depends only on this interface.

Architectural rules:
    1. parse() must return a fully valid ParsedRequest or raise ValueError.
    2. No provider may touch a ConversationContext or the store.
    3. No clarity judgement lives inside a provider, only extraction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from clarity_loop.domain.request import ParsedRequest


class TextUnderstandingProvider(ABC):
    """Base class for converting raw text into a ParsedRequest."""

    @abstractmethod
    def parse(self, raw_text: str) -> ParsedRequest:
        """Extract tokens, entities and intent from *raw_text*.

        Raises:
            ValueError: If the text cannot be parsed.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this provider."""
        ...
