"""Interfaces for the side effects that follow a dispatch, with in-process defaults.

Persistence of attempt history and the credit balance belong to the wider
platform. The dispatcher only calls these after a result is final and never
lets their failures change that result.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict, defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Deque, Dict, Protocol

if TYPE_CHECKING:
    from .dispatcher import DispatchResult
    from .providers.base import OutboundMessage

logger = logging.getLogger(__name__)

MAX_TRACKED_DISPATCHES = 10_000
MAX_LEDGER_ENTRIES = 10_000


class AttemptLogger(Protocol):
    async def record(self, user_id: str, message: OutboundMessage, result: DispatchResult) -> None:
        ...


class CreditLedger(Protocol):
    async def debit(self, user_id: str, credits: int, *, dispatch_id: str) -> None:
        ...


class LoggingAttemptLogger:
    """Writes one structured audit record per dispatch to the application log."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logging.getLogger("dispatch_engine.audit")

    async def record(self, user_id: str, message: OutboundMessage, result: DispatchResult) -> None:
        self.log.info(
            "SMS dispatch recorded.",
            extra={"dispatch_id": result.dispatch_id, "audit": result.audit_record(user_id, message)},
        )


@dataclass
class LedgerEntry:
    user_id: str
    delta: int
    dispatch_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryCreditLedger:
    """Per-user balances kept in process memory.

    Debits for one user are serialized by a per-user lock and a recently seen
    dispatch id is debited at most once. Only the most recent
    ``max_tracked_dispatches`` ids and ``max_entries`` entries are kept.
    Balances may go negative.
    """

    def __init__(
        self,
        balances: Dict[str, int] | None = None,
        *,
        max_tracked_dispatches: int = MAX_TRACKED_DISPATCHES,
        max_entries: int = MAX_LEDGER_ENTRIES,
    ):
        self._balances: Dict[str, int] = defaultdict(int, balances or {})
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._debited: OrderedDict[str, None] = OrderedDict()
        self._max_tracked_dispatches = max_tracked_dispatches
        self.entries: Deque[LedgerEntry] = deque(maxlen=max_entries)

    def balance(self, user_id: str) -> int:
        return self._balances.get(user_id, 0)

    async def credit(self, user_id: str, credits: int, *, reference: str) -> None:
        async with self._locks[user_id]:
            self._balances[user_id] += credits
            self.entries.append(LedgerEntry(user_id=user_id, delta=credits, dispatch_id=reference))

    async def debit(self, user_id: str, credits: int, *, dispatch_id: str) -> None:
        if credits < 0:
            raise ValueError("credits to debit must be >= 0")
        async with self._locks[user_id]:
            if dispatch_id in self._debited:
                logger.warning(
                    "Dispatch %s already debited; ignoring repeat.",
                    dispatch_id,
                    extra={"dispatch_id": dispatch_id},
                )
                return
            self._debited[dispatch_id] = None
            if len(self._debited) > self._max_tracked_dispatches:
                self._debited.popitem(last=False)
            self._balances[user_id] -= credits
            self.entries.append(LedgerEntry(user_id=user_id, delta=-credits, dispatch_id=dispatch_id))
