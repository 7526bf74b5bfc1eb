# Area: Core
"""
guess_duel._core.history_ledger — Append-only guess history
===========================================================

Deduplicated, arrival-ordered collection of GuessRecords. The dedup
key is (player_id, guess_number): guessed values can legitimately
repeat across turns, the sequence number cannot.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Tuple

from ..types import GuessRecord

logger = logging.getLogger("guess_duel.history")


class HistoryLedger:
    """
    Append-only guess history for one session.

    There is no removal. Callers that want most-recent-first order
    reverse the sequences themselves.
    """

    def __init__(self) -> None:
        self._records: List[GuessRecord] = []
        self._keys: Dict[Tuple[str, int], GuessRecord] = {}

    def append(self, record: GuessRecord) -> bool:
        """
        Insert a record unless its key is already present.

        Returns:
            True if the record was newly inserted, False for a duplicate
        """
        key = record.dedup_key
        if key in self._keys:
            logger.debug("Duplicate guess ignored: %s #%d", *key)
            return False
        self._keys[key] = record
        self._records.append(record)
        logger.debug("Guess recorded: %s #%d", *key)
        return True

    def merge(self, records) -> int:
        """Append every record; return how many were new."""
        return sum(1 for record in records if self.append(record))

    def all_for(self, player_id: str) -> List[GuessRecord]:
        return [r for r in self._records if r.player_id == player_id]

    def all_except(self, player_id: str) -> List[GuessRecord]:
        return [r for r in self._records if r.player_id != player_id]

    def records(self) -> List[GuessRecord]:
        return list(self._records)

    def __contains__(self, record: object) -> bool:
        return isinstance(record, GuessRecord) and record.dedup_key in self._keys

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[GuessRecord]:
        return iter(list(self._records))
