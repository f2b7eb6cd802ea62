"""Quote persistence with lazy, read-time expiry."""

from __future__ import annotations

import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Optional

from core.clock import Clock, WallClock
from core.errors import ExpiredError, NotFoundError, QuoteIdCollisionError

from .models import QuoteRecord

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 8


def new_quote_id() -> str:
    return f"quote_{secrets.token_hex(16)}"


class QuoteStore(ABC):
    @abstractmethod
    def create(self, record: QuoteRecord) -> str:
        """Persist ``record`` under a fresh unguessable id and return the id."""

    @abstractmethod
    def get(self, quote_id: str) -> QuoteRecord:
        """Return the record, or raise NotFoundError / ExpiredError."""


class InMemoryQuoteStore(QuoteStore):
    """
    Thread-safe in-process store.

    Records are never swept in the background: a record is treated as dead
    from the first read at which ``now >= expires_at``. Generated ids that are
    already taken are rejected and regenerated, never overwritten.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        id_factory: Callable[[], str] = new_quote_id,
    ):
        self._clock = clock or WallClock()
        self._id_factory = id_factory
        self._records: dict[str, QuoteRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: QuoteRecord) -> str:
        with self._lock:
            for _ in range(MAX_ID_ATTEMPTS):
                quote_id = self._id_factory()
                if quote_id not in self._records:
                    self._records[quote_id] = replace(record, quote_id=quote_id)
                    return quote_id
                logger.warning("quote id collision on %s, regenerating", quote_id)
        raise QuoteIdCollisionError(
            f"Could not allocate a unique quote id after {MAX_ID_ATTEMPTS} attempts"
        )

    def get(self, quote_id: str) -> QuoteRecord:
        with self._lock:
            record = self._records.get(quote_id)
        if record is None:
            raise NotFoundError(f"Quote {quote_id} not found")
        if record.is_expired(self._clock()):
            raise ExpiredError(f"Quote {quote_id} expired at {record.expires_at}")
        return record

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
