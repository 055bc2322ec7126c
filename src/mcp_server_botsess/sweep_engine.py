"""
Sweep Engine

One sweep is a single forward pass over the session store:

1. Count the sessions once; that count bounds the pass.
2. Fetch fixed-size pages ordered by session id, each page starting after the
   last id seen (keyset pagination). The cursor never moves backwards, so no
   session is visited twice in one sweep.
3. Decode, classify and act on every session of the page.

The count is not re-queried while paging. Under concurrent writes the pass
may stop short of new sessions or end early on an exhausted store; both are
accepted. Each page is an independent read and each delete an independent
write, so stopping between pages leaves every completed delete in place.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from . import session_codec
from .base_session_store import SessionStore
from .bot_filter import BotClassifier
from .config import ConfigProvider, load_sweep_settings
from .errors import DecodeError, SweepCancelledError
from .eviction_policy import EvictionPolicy
from .session_codec import DecodedSession
from .storage_types import Disposition, SessionRecord, SweepResult

logger = logging.getLogger(__name__)

# Sessions per page; small enough not to starve other connections
BATCH_LIMIT = 1000


class SweepEngine:
    """Runs cleanup sweeps over one session store."""

    def __init__(
        self,
        store: SessionStore,
        policy: EvictionPolicy,
        lifetime_seconds: int,
        batch_limit: int = BATCH_LIMIT,
        clock: Callable[[], float] = time.time,
        decoder: Callable[[bytes | str], DecodedSession] = session_codec.decode,
    ) -> None:
        if batch_limit <= 0:
            raise ValueError("batch_limit must be positive")
        self._store = store
        self._policy = policy
        self._lifetime_seconds = lifetime_seconds
        self._batch_limit = batch_limit
        self._clock = clock
        self._decode = decoder

    def run(
        self,
        deadline: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SweepResult:
        """
        Run one full sweep.

        Args:
            deadline: Optional time.monotonic() value after which no new page is fetched
            cancel_event: Optional event that stops the sweep before the next page

        Returns:
            SweepResult with total set to the count captured at sweep start

        Raises:
            StoreError: If the store fails to count, fetch or delete
            SweepCancelledError: If stopped by deadline or cancel_event
        """
        result = SweepResult()
        now = int(self._clock())
        total = self._store.count()
        cursor: str | None = None
        processed = 0
        logger.info(
            "Sweep started: %d sessions, lifetime %ds, batch %d",
            total,
            self._lifetime_seconds,
            self._batch_limit,
        )

        while processed < total:
            self._check_cancelled(deadline, cancel_event, result, total)
            batch = self._store.fetch_batch(cursor, self._batch_limit)
            if not batch:
                logger.info(
                    "Session store exhausted after %d of %d sessions.", processed, total
                )
                break
            for record in batch:
                if processed >= total:
                    break
                cursor = record.session_id
                processed += 1
                self._process_record(record, now, result)

        result.total = total
        logger.info(
            "Sweep finished: total=%d bots=%d inactive=%d active=%d failures=%d",
            result.total,
            result.removed_bots,
            result.removed_inactive,
            result.active,
            result.failures,
        )
        return result

    def _check_cancelled(
        self,
        deadline: float | None,
        cancel_event: threading.Event | None,
        result: SweepResult,
        total: int,
    ) -> None:
        reason = None
        if cancel_event is not None and cancel_event.is_set():
            reason = "cancel requested"
        elif deadline is not None and time.monotonic() >= deadline:
            reason = "deadline reached"
        if reason is None:
            return
        result.total = total
        logger.warning(
            "Sweep stopped (%s) after %d of %d sessions.", reason, result.processed, total
        )
        raise SweepCancelledError(f"Sweep stopped: {reason}", result)

    def _process_record(
        self, record: SessionRecord, now: int, result: SweepResult
    ) -> Disposition:
        session_id = record.session_id
        if record.expires_or_created_at is None:
            logger.error("Session '%s' has no usable timestamp.", session_id)
            result.failures += 1
            return Disposition.DECODE_FAILED
        try:
            session = self._decode(record.raw_data)
        except DecodeError as exc:
            logger.error("Session '%s': %s", session_id, exc)
            result.failures += 1
            return Disposition.DECODE_FAILED

        decision = self._policy.classify(
            session, now, record.expires_or_created_at, self._lifetime_seconds
        )
        disposition = decision.disposition

        if disposition is Disposition.DELETE_BOT:
            logger.debug("Session '%s' belongs to bot (%s).", session_id, decision.agent)
            if self._delete(session_id, "bot"):
                result.removed_bots += 1
            else:
                result.failures += 1
        elif disposition is Disposition.DELETE_INACTIVE:
            logger.debug("Session '%s' belongs to inactive user.", session_id)
            if self._delete(session_id, "inactive"):
                result.removed_inactive += 1
            else:
                result.failures += 1
        elif disposition is Disposition.ACTIVE:
            result.active += 1
            result.tally_agent(decision.agent)
        else:
            logger.debug("Session '%s' has no validator user agent.", session_id)
            result.failures += 1
        return disposition

    def _delete(self, session_id: str, kind: str) -> bool:
        # 0 rows means another actor removed the session first
        if self._store.delete(session_id) == 1:
            logger.debug("Session '%s' is deleted as %s.", session_id, kind)
            return True
        logger.error("Cannot delete %s session '%s'.", kind, session_id)
        return False


def run_cleanup(
    provider: ConfigProvider,
    store: SessionStore,
    batch_limit: int = BATCH_LIMIT,
    clock: Callable[[], float] = time.time,
    deadline: float | None = None,
    cancel_event: threading.Event | None = None,
) -> SweepResult:
    """
    Resolve settings from provider and run one sweep over store.

    Raises:
        ConfigError: Before any session is read, if settings are unusable
        StoreError: If the store fails during the sweep
        SweepCancelledError: If stopped by deadline or cancel_event
    """
    settings = load_sweep_settings(provider, batch_limit=batch_limit)
    policy = EvictionPolicy(BotClassifier.from_lines(settings.filter_lines))
    engine = SweepEngine(
        store,
        policy,
        settings.session_lifetime_seconds,
        batch_limit=settings.batch_limit,
        clock=clock,
    )
    return engine.run(deadline=deadline, cancel_event=cancel_event)
