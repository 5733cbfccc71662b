"""
nanobrain Credit Tracker

Assigns each memory a trust score and moves it with delayed, session-level
outcome signals.

Flow:
1. A retrieval batch is recorded as a pending turn for its session.
2. Later an outcome signal arrives for the session. The most recent
   unresolved turn of that session is resolved; every memory in it moves
   toward the signal's reward by an exponential moving average:

       delta     = reward / sqrt(n)
       new_score = (1 - alpha) * old_score + alpha * delta

   where n is the batch size, so credit shared by many simultaneously
   retrieved memories is normalized.
3. Older unresolved turns of the same session are never revisited
   (single-hop attribution).

Scores also decay exponentially with time via apply_decay().
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Union

from nanobrain.config.models import CreditConfig
from nanobrain.errors import InvalidInputError
from nanobrain.memory.ledger import CreditLedger
from nanobrain.memory.schemas import (
    CreditEvent,
    CreditRecord,
    OutcomeSignal,
    ScoredId,
    TurnRecord,
)

logger = logging.getLogger(__name__)

SIGNAL_REWARD: Dict[OutcomeSignal, float] = {
    OutcomeSignal.TASK_COMPLETED: 0.5,
    OutcomeSignal.POSITIVE_FEEDBACK: 0.3,
    OutcomeSignal.TOOL_SUCCESS: 0.1,
    OutcomeSignal.USER_CORRECTION: -0.4,
    OutcomeSignal.SESSION_ABANDONED: -0.2,
}

MAX_TOP_SCORED = 1000


class CreditTracker:
    """Reads and mutates the credit ledger according to outcome signals."""

    def __init__(self, ledger: CreditLedger, config: Optional[CreditConfig] = None):
        self.ledger = ledger
        self.config = config or CreditConfig()

    # =====================================================================
    # Records
    # =====================================================================

    def ensure_record(self, memory_id: str) -> CreditRecord:
        """Get the credit record for a memory, creating it on first touch."""
        if self.ledger.insert_record_if_absent(
            memory_id, self.config.initial_score, self.config.decay_rate
        ):
            logger.debug("Created credit record for %s", memory_id)
        return self.ledger.get_record(memory_id)

    def get_score(self, memory_id: str) -> float:
        return self.ensure_record(memory_id).score

    def set_score(self, memory_id: str, score: float) -> None:
        """Overwrite a score directly (lifecycle merges and promotions)."""
        self.ensure_record(memory_id)
        self.ledger.set_score(memory_id, score)

    def delete_record(self, memory_id: str) -> bool:
        return self.ledger.delete_record(memory_id)

    # =====================================================================
    # Turns and outcomes
    # =====================================================================

    def record_retrieval(self, session_id: str, memory_ids: Iterable[str]) -> Optional[int]:
        """Record a retrieval batch as a pending turn.

        Duplicate ids are dropped, keeping first-seen order. Returns the
        new turn id, or None if there was nothing to record.
        """
        unique = list(dict.fromkeys(memory_ids))
        if not unique:
            return None

        with self.ledger.transaction():
            for memory_id in unique:
                self.ensure_record(memory_id)
            turn_id = self.ledger.insert_turn(session_id, unique)

        logger.debug("Recorded turn %d for session %s (%d memories)",
                     turn_id, session_id, len(unique))
        return turn_id

    def apply_outcome(self, session_id: str, signal: Union[OutcomeSignal, str]) -> int:
        """Attribute an outcome to the session's most recent pending turn.

        Returns the number of memories credited; 0 if the session has no
        pending turn.
        """
        signal = parse_signal(signal)
        reward = SIGNAL_REWARD[signal]
        alpha = self.config.alpha

        with self.ledger.transaction():
            turn = self.ledger.latest_unresolved_turn(session_id)
            if turn is None:
                logger.debug("No pending turn for session %s; %s ignored",
                             session_id, signal.value)
                return 0

            n = max(1, len(turn.retrieved_memory_ids))
            delta = reward / math.sqrt(n)

            for memory_id in turn.retrieved_memory_ids:
                old_score = self.ensure_record(memory_id).score
                new_score = (1 - alpha) * old_score + alpha * delta
                self.ledger.record_access(memory_id, new_score)
                self.ledger.insert_event(
                    memory_id=memory_id,
                    event_type=signal.value,
                    reward=reward,
                    old_score=old_score,
                    new_score=new_score,
                    session_id=session_id,
                )

            self.ledger.resolve_turn(turn.id, signal.value)

        logger.info("Applied %s to turn %d of session %s (%d memories)",
                    signal.value, turn.id, session_id, len(turn.retrieved_memory_ids))
        return len(turn.retrieved_memory_ids)

    def get_pending_turns(self, session_id: Optional[str] = None) -> List[TurnRecord]:
        return self.ledger.get_turns(session_id=session_id, pending_only=True)

    def get_events(self, memory_id: Optional[str] = None, limit: int = 50) -> List[CreditEvent]:
        return self.ledger.get_events(memory_id=memory_id, limit=limit)

    def get_stats(self) -> Dict[str, Any]:
        return self.ledger.get_stats()

    # =====================================================================
    # Decay Engine
    # =====================================================================

    def apply_decay(self, days: float) -> int:
        """Decay every score by exp(-decay_rate * days).

        Applied to all records regardless of when they were last accessed.
        Returns the number of records decayed; 0 and no change for days <= 0.
        """
        if days <= 0:
            return 0

        with self.ledger.transaction():
            records = self.ledger.all_records()
            for record in records:
                decayed = record.score * math.exp(-record.decay_rate * days)
                self.ledger.set_score(record.id, decayed)
            self.ledger.log_lifecycle(
                "decay",
                [r.id for r in records],
                f"Applied decay for {days:g} day(s)",
            )

        logger.info("Decayed %d credit record(s) by %g day(s)", len(records), days)
        return len(records)

    # =====================================================================
    # Ranking
    # =====================================================================

    def get_top_scored(self, limit: int) -> List[ScoredId]:
        """Highest-scored records first; limit clamped to [1, 1000]."""
        safe_limit = max(1, min(MAX_TOP_SCORED, limit))
        return self.ledger.top_scored(safe_limit)

    def get_low_scored(self, threshold: float) -> List[ScoredId]:
        """Records scoring strictly below threshold, lowest first."""
        return self.ledger.below_threshold(threshold)


def parse_signal(signal: Union[OutcomeSignal, str]) -> OutcomeSignal:
    """Coerce a signal name to OutcomeSignal. Raises InvalidInputError."""
    if isinstance(signal, OutcomeSignal):
        return signal
    try:
        return OutcomeSignal(signal)
    except ValueError:
        valid = ", ".join(s.value for s in OutcomeSignal)
        raise InvalidInputError(f"Unknown outcome signal {signal!r}. Must be one of: {valid}")
