"""
Governance Proposals

Defines the Proposal record, its derived lifecycle states and status labels,
and the ProposalStore that keeps every proposal ever created.
"""

import threading
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional

from ..constants import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH
from ..exceptions import InvalidProposalError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(IntEnum):
    """Lifecycle stage, derived from the flags and the block counter."""
    ACTIVE = 0          # Before end block, votes accepted
    VOTING_CLOSED = 1   # At/after end block, awaiting execute or cancel
    EXECUTED = 2        # Terminal
    CANCELLED = 3       # Terminal


class StatusLabel(IntEnum):
    """
    Label reported by ``status_report``.

    READY only means the timelock has elapsed; it says nothing about
    quorum or majority.
    """
    PENDING = 0
    READY = 1
    EXECUTED = 2
    CANCELLED = 3


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    Governance proposal record.

    Fields:
        id:                    Sequential identifier, never reused
        proposer:              Identity that created the proposal
        title:                 Short title (≤ MAX_TITLE_LENGTH)
        description:           Rationale (≤ MAX_DESCRIPTION_LENGTH)
        start_block:           Block counter at creation
        end_block:             start_block + voting period
        execution_time:        Earliest wall-clock time execution is permitted
        target:                Optional replacement implementation reference
        expected_fingerprint:  Fingerprint of *target* taken at creation
        votes_for:             Sum of FOR weights
        votes_against:         Sum of AGAINST weights
        executed / cancelled:  Terminal flags, never both set
        created_at:            Wall-clock time at creation
    """
    id: int
    proposer: str
    title: str
    description: str
    start_block: int
    end_block: int
    execution_time: int
    target: Optional[str] = None
    expected_fingerprint: Optional[bytes] = None
    votes_for: int = 0
    votes_against: int = 0
    executed: bool = False
    cancelled: bool = False
    created_at: int = 0

    def __post_init__(self):
        if len(self.title) > MAX_TITLE_LENGTH:
            raise InvalidProposalError(
                f"Proposal title exceeds {MAX_TITLE_LENGTH} characters",
                reason="title",
            )
        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise InvalidProposalError(
                f"Proposal description exceeds {MAX_DESCRIPTION_LENGTH} characters",
                reason="description",
            )
        if self.end_block <= self.start_block:
            raise InvalidProposalError(
                f"end_block {self.end_block} must be after start_block {self.start_block}",
                reason="window",
            )
        if self.expected_fingerprint is not None and self.target is None:
            raise InvalidProposalError(
                "An expected fingerprint requires a target", reason="fingerprint"
            )
        if self.executed and self.cancelled:
            raise InvalidProposalError(
                "A proposal cannot be both executed and cancelled", reason="flags"
            )
        if self.votes_for < 0 or self.votes_against < 0:
            raise InvalidProposalError("Tallies cannot be negative", reason="tally")

    # ── Properties ────────────────────────────────────────────────────

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against

    @property
    def is_terminal(self) -> bool:
        return self.executed or self.cancelled

    @property
    def requires_verification(self) -> bool:
        """True when execution must re-check the target's fingerprint."""
        return self.target is not None and self.expected_fingerprint is not None

    def state_at(self, block: int) -> ProposalState:
        if self.executed:
            return ProposalState.EXECUTED
        if self.cancelled:
            return ProposalState.CANCELLED
        if block >= self.end_block:
            return ProposalState.VOTING_CLOSED
        return ProposalState.ACTIVE

    def label_at(self, timestamp: int) -> StatusLabel:
        if self.executed:
            return StatusLabel.EXECUTED
        if self.cancelled:
            return StatusLabel.CANCELLED
        if timestamp >= self.execution_time:
            return StatusLabel.READY
        return StatusLabel.PENDING

    def timelock_remaining(self, timestamp: int) -> int:
        """Seconds until execution_time (0 if already past)."""
        return max(0, self.execution_time - timestamp)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "title": self.title,
            "description": self.description,
            "target": self.target,
            "expectedFingerprint": (
                "0x" + self.expected_fingerprint.hex()
                if self.expected_fingerprint is not None else None
            ),
            "votesFor": str(self.votes_for),
            "votesAgainst": str(self.votes_against),
            "startBlock": self.start_block,
            "endBlock": self.end_block,
            "executionTime": self.execution_time,
            "executed": self.executed,
            "cancelled": self.cancelled,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        fingerprint = data.get("expectedFingerprint")
        return cls(
            id=data["id"],
            proposer=data["proposer"],
            title=data["title"],
            description=data["description"],
            target=data.get("target"),
            expected_fingerprint=(
                bytes.fromhex(fingerprint[2:] if fingerprint.startswith("0x") else fingerprint)
                if fingerprint else None
            ),
            votes_for=int(data.get("votesFor", 0)),
            votes_against=int(data.get("votesAgainst", 0)),
            start_block=data["startBlock"],
            end_block=data["endBlock"],
            execution_time=data["executionTime"],
            executed=data.get("executed", False),
            cancelled=data.get("cancelled", False),
            created_at=data.get("createdAt", 0),
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.title}' "
            f"for={self.votes_for} against={self.votes_against} "
            f"executed={self.executed} cancelled={self.cancelled}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL STORE
# ══════════════════════════════════════════════════════════════════════

class ProposalStore:
    """
    Keyed storage of proposals by id.

    Reads return copies, so a caller can only change a stored proposal
    through ``update``. Records are never deleted.
    """

    def __init__(self):
        self._proposals: Dict[int, Proposal] = {}
        self._lock = threading.Lock()

    @property
    def next_id(self) -> int:
        return len(self._proposals) + 1

    def count(self) -> int:
        return len(self._proposals)

    def insert(self, proposal: Proposal) -> None:
        """Store a new proposal; its id must be the next sequential id."""
        with self._lock:
            expected = len(self._proposals) + 1
            if proposal.id != expected:
                raise ValueError(
                    f"Proposal id {proposal.id} is not the next sequential id ({expected})"
                )
            self._proposals[proposal.id] = replace(proposal)

    def get(self, proposal_id: int) -> Optional[Proposal]:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return replace(proposal) if proposal is not None else None

    def update(self, proposal: Proposal) -> None:
        with self._lock:
            if proposal.id not in self._proposals:
                raise KeyError(f"Proposal #{proposal.id} does not exist")
            self._proposals[proposal.id] = replace(proposal)

    def __contains__(self, proposal_id: int) -> bool:
        return proposal_id in self._proposals

    def __iter__(self) -> Iterator[Proposal]:
        with self._lock:
            snapshot = [replace(p) for p in self._proposals.values()]
        return iter(snapshot)

    def to_dict(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self]

    @classmethod
    def from_dict(cls, data: List[Dict[str, Any]]) -> "ProposalStore":
        store = cls()
        for item in sorted(data, key=lambda d: d["id"]):
            store.insert(Proposal.from_dict(item))
        return store

    def __repr__(self) -> str:
        return f"<ProposalStore proposals={len(self._proposals)}>"
