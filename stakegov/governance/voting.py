"""
Stake-Weighted Voting

Implements:
  - 1 unit of voting power = 1 vote, snapshotted when the vote is cast
  - Vote directions: For / Against
  - Quorum: for + against ≥ floor(total_voting_power * quorum_percent / 100)
  - Strict majority: for > against (a tie fails)
  - VoteLedger: at most one vote record per (proposal, voter)
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..constants import GOVERNANCE_VOTE_AGAINST, GOVERNANCE_VOTE_FOR
from ..exceptions import AlreadyVotedError
from ..logger import get_logger
from .proposals import Proposal

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class Vote:
    """Vote direction constants matching constants.py."""
    FOR = GOVERNANCE_VOTE_FOR
    AGAINST = GOVERNANCE_VOTE_AGAINST

    @classmethod
    def name(cls, support: bool) -> str:
        return "FOR" if support else "AGAINST"

    @classmethod
    def parse(cls, value: str) -> bool:
        """Parse 'for'/'against' (also yes/no, true/false) into a direction."""
        v = value.strip().lower()
        if v in ("for", "yes", "true", "1"):
            return cls.FOR
        if v in ("against", "no", "false", "0"):
            return cls.AGAINST
        raise ValueError(f"Invalid vote direction: {value!r}")


@dataclass(frozen=True)
class VoteRecord:
    """An individual vote. Weight is the voter's power at cast time."""
    proposal_id: int
    voter: str
    support: bool
    weight: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "direction": Vote.name(self.support),
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(
            proposal_id=data["proposalId"],
            voter=data["voter"],
            support=data["direction"] == "FOR",
            weight=int(data["weight"]),
            timestamp=data["timestamp"],
        )


# ══════════════════════════════════════════════════════════════════════
#  TALLY ARITHMETIC
# ══════════════════════════════════════════════════════════════════════

def quorum_votes(total_voting_power: int, quorum_percent: int) -> int:
    """Participation needed for quorum, using floor division."""
    return total_voting_power * quorum_percent // 100


def quorum_reached(proposal: Proposal, total_voting_power: int, quorum_percent: int) -> bool:
    return proposal.total_votes >= quorum_votes(total_voting_power, quorum_percent)


def majority_reached(proposal: Proposal) -> bool:
    return proposal.votes_for > proposal.votes_against


def apply_vote(proposal: Proposal, support: bool, weight: int) -> None:
    """Add *weight* to the tally matching *support*."""
    if weight < 0:
        raise ValueError("Vote weight cannot be negative")
    if support:
        proposal.votes_for += weight
    else:
        proposal.votes_against += weight


# ══════════════════════════════════════════════════════════════════════
#  VOTE LEDGER
# ══════════════════════════════════════════════════════════════════════

class VoteLedger:
    """
    Keyed storage of vote records by (proposal id, voter).

    A record is written once and never updated or removed; inserting a
    duplicate key raises AlreadyVotedError.
    """

    def __init__(self):
        self._records: Dict[Tuple[int, str], VoteRecord] = {}
        self._by_proposal: Dict[int, List[VoteRecord]] = {}
        self._lock = threading.Lock()

    def insert(self, record: VoteRecord) -> None:
        key = (record.proposal_id, record.voter)
        with self._lock:
            if key in self._records:
                raise AlreadyVotedError(
                    f"{record.voter} has already voted on proposal #{record.proposal_id}"
                )
            self._records[key] = record
            self._by_proposal.setdefault(record.proposal_id, []).append(record)

    def get(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._records.get((proposal_id, voter))

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return (proposal_id, voter) in self._records

    def votes_for_proposal(self, proposal_id: int) -> List[VoteRecord]:
        with self._lock:
            return list(self._by_proposal.get(proposal_id, []))

    def voter_count(self, proposal_id: int) -> int:
        return len(self._by_proposal.get(proposal_id, []))

    def totals(self, proposal_id: int) -> Tuple[int, int]:
        """(for, against) summed from the records themselves."""
        records = self.votes_for_proposal(proposal_id)
        votes_for = sum(r.weight for r in records if r.support)
        votes_against = sum(r.weight for r in records if not r.support)
        return votes_for, votes_against

    def __len__(self) -> int:
        return len(self._records)

    def to_dict(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [r.to_dict() for r in self._records.values()]

    @classmethod
    def from_dict(cls, data: List[Dict[str, Any]]) -> "VoteLedger":
        ledger = cls()
        for item in data:
            ledger.insert(VoteRecord.from_dict(item))
        return ledger

    def __repr__(self) -> str:
        return f"<VoteLedger votes={len(self._records)}>"
