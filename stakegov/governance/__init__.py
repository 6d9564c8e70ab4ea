"""
stakegov Governance

Provides:
  - Clock / SystemClock / ManualClock / ClockSnapshot           (clock.py)
  - Proposal / ProposalStore / ProposalState / StatusLabel      (proposals.py)
  - Vote / VoteRecord / VoteLedger                              (voting.py)
  - CodeRegistry / compute_fingerprint / verify_target          (fingerprint.py)
  - GovernanceEngine / StatusReport                             (engine.py)
"""

from .clock import (
    Clock,
    ClockSnapshot,
    ManualClock,
    SystemClock,
    clock_from_dict,
)
from .proposals import (
    Proposal,
    ProposalState,
    ProposalStore,
    StatusLabel,
)
from .voting import (
    Vote,
    VoteLedger,
    VoteRecord,
    majority_reached,
    quorum_reached,
    quorum_votes,
)
from .fingerprint import (
    CodeRegistry,
    compute_fingerprint,
    target_matches,
    verify_target,
)
from .engine import (
    GovernanceEngine,
    StatusReport,
)

__all__ = [
    # Clock
    "Clock",
    "ClockSnapshot",
    "ManualClock",
    "SystemClock",
    "clock_from_dict",
    # Proposals
    "Proposal",
    "ProposalState",
    "ProposalStore",
    "StatusLabel",
    # Voting
    "Vote",
    "VoteLedger",
    "VoteRecord",
    "majority_reached",
    "quorum_reached",
    "quorum_votes",
    # Fingerprints
    "CodeRegistry",
    "compute_fingerprint",
    "target_matches",
    "verify_target",
    # Engine
    "GovernanceEngine",
    "StatusReport",
]
