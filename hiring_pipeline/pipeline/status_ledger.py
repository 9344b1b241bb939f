"""
Per-round original/current status ledger
"""
from typing import Dict, Iterable, List, Tuple

import structlog

from hiring_pipeline.core.exceptions import NotFoundError
from hiring_pipeline.models.candidate import Candidate, RoundStatus

logger = structlog.get_logger()


class StatusLedger:
    """
    Original (server-confirmed) and current (locally edited) status per
    candidate, scoped to a single round template.

    Persistence and advancement use snapshot_all(), never diff(): every
    known candidate gets an explicit status write.
    """

    def __init__(self, round_template_id: str):
        self.round_template_id = round_template_id
        self._original: Dict[str, RoundStatus] = {}
        self._current: Dict[str, RoundStatus] = {}

    def __len__(self) -> int:
        return len(self._current)

    def __contains__(self, candidate_id: str) -> bool:
        return candidate_id in self._current

    def _read(self, candidate: Candidate) -> RoundStatus:
        return candidate.status_for(self.round_template_id)

    def seed(self, candidates: Iterable[Candidate]) -> None:
        """Replace the ledger contents; original == current afterwards"""
        self._original = {}
        self._current = {}
        for candidate in candidates:
            status = self._read(candidate)
            self._original[candidate.id] = status
            self._current[candidate.id] = status
        logger.debug("status_ledger_seeded", round_template_id=self.round_template_id, count=len(self._current))

    def extend(self, candidates: Iterable[Candidate]) -> int:
        """Seed candidates not yet known. Returns how many were added."""
        added = 0
        for candidate in candidates:
            if candidate.id in self._current:
                continue
            status = self._read(candidate)
            self._original[candidate.id] = status
            self._current[candidate.id] = status
            added += 1
        return added

    def set_current(self, candidate_id: str, status: RoundStatus) -> None:
        if candidate_id not in self._current:
            raise NotFoundError("Candidate in status ledger", candidate_id)
        self._current[candidate_id] = RoundStatus(status)

    def original(self, candidate_id: str) -> RoundStatus:
        if candidate_id not in self._original:
            raise NotFoundError("Candidate in status ledger", candidate_id)
        return self._original[candidate_id]

    def current(self, candidate_id: str) -> RoundStatus:
        if candidate_id not in self._current:
            raise NotFoundError("Candidate in status ledger", candidate_id)
        return self._current[candidate_id]

    def diff(self) -> Dict[str, Tuple[RoundStatus, RoundStatus]]:
        """Changed candidates as {candidate_id: (original, current)}"""
        return {
            candidate_id: (self._original[candidate_id], current)
            for candidate_id, current in self._current.items()
            if current != self._original[candidate_id]
        }

    @property
    def changed_count(self) -> int:
        return len(self.diff())

    @property
    def selected_count(self) -> int:
        return sum(1 for _, current in self.diff().values() if current == RoundStatus.SELECTED)

    @property
    def has_unsaved_changes(self) -> bool:
        return self.changed_count > 0

    def snapshot_all(self) -> Dict[str, RoundStatus]:
        return dict(self._current)

    def candidate_ids(self) -> List[str]:
        return list(self._current)

    def mark_persisted(self, written: Dict[str, RoundStatus]) -> None:
        """
        Record the values actually sent to the server as the new originals.
        Edits made while the write was in flight stay unsaved.
        """
        for candidate_id, status in written.items():
            if candidate_id in self._original:
                self._original[candidate_id] = RoundStatus(status)
