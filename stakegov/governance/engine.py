"""
Governance Lifecycle Engine

Owns the ProposalStore and VoteLedger and is their only writer.

Lifecycle:
    ACTIVE (start_block ≤ block < end_block)   votes accepted
    VOTING_CLOSED (block ≥ end_block)          awaiting execute / cancel
    EXECUTED | CANCELLED                       terminal, retained for audit

Defeat is never stored; ``is_defeated`` derives it from the tallies.

Every public operation reads the clocks once and runs under a per-proposal
lock (creation under the creation lock). All checks happen before the first
write, so a rejected call leaves state unchanged.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..config import GovernanceConfig
from ..constants import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH
from ..exceptions import (
    AlreadyVotedError,
    ConfigurationError,
    ConversionFailedError,
    FingerprintUnavailableError,
    GovernanceError,
    InvalidContractHashError,
    InvalidProposalError,
    NotAuthorizedError,
    ProposalExpiredError,
    ProposalNotFoundError,
    ProposalNotPassedError,
    TimelockNotExpiredError,
)
from ..logger import get_logger
from ..metrics import GovernanceMetrics
from .clock import Clock, ClockSnapshot
from .fingerprint import FingerprintFn, fetch_fingerprint, verify_target
from .proposals import Proposal, ProposalState, ProposalStore
from .voting import (
    Vote,
    VoteLedger,
    VoteRecord,
    apply_vote,
    majority_reached,
    quorum_reached,
)

logger = get_logger(__name__)

VotingPowerFn = Callable[[str], int]


def _no_fingerprint_service(target: str) -> bytes:
    raise FingerprintUnavailableError("No fingerprint service configured")


def render_decimal(value: Any) -> str:
    """Decimal text of a non-negative integer amount."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConversionFailedError(f"Cannot render {value!r} as a decimal amount")
    return str(value)


@dataclass(frozen=True)
class StatusReport:
    """Human-readable view of a proposal. ``status`` reflects the timelock only."""
    proposal_id: int
    title: str
    votes_for: str
    votes_against: str
    timelock_remaining: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "title": self.title,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "timelockRemaining": self.timelock_remaining,
            "status": self.status,
        }


class GovernanceEngine:
    """
    Proposal lifecycle state machine.

    Collaborators:
        clock:            Clock with current_block() / current_time()
        voting_power_fn:  Callable(identity) → int, current voting power;
                          a negative answer is rejected as ConversionFailed
        fingerprint_fn:   Callable(target) → bytes, raising
                          FingerprintUnavailableError when unavailable;
                          any other exception counts as unavailable too
    """

    def __init__(
        self,
        clock: Clock,
        voting_power_fn: VotingPowerFn,
        fingerprint_fn: Optional[FingerprintFn] = None,
        config: Optional[GovernanceConfig] = None,
        metrics: Optional[GovernanceMetrics] = None,
        store: Optional[ProposalStore] = None,
        ledger: Optional[VoteLedger] = None,
    ):
        config = replace(config) if config is not None else GovernanceConfig()
        config.validate()

        self.clock = clock
        self._voting_power = voting_power_fn
        self._fingerprint = fingerprint_fn or _no_fingerprint_service
        self._config = config
        self.metrics = metrics

        self._store = store if store is not None else ProposalStore()
        self._ledger = ledger if ledger is not None else VoteLedger()

        self._create_lock = threading.Lock()
        self._params_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {
            p.id: threading.Lock() for p in self._store
        }

        if self.metrics is not None:
            self.metrics.proposal_count.set(self._store.count())

    # ── Internals ─────────────────────────────────────────────────────

    @property
    def config(self) -> GovernanceConfig:
        """Copy of the current parameters."""
        return replace(self._config)

    def _lock_for(self, proposal_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(proposal_id)
        if lock is None:
            raise ProposalNotFoundError(
                f"Proposal #{proposal_id} does not exist", reason="unknown"
            )
        return lock

    def _load(self, proposal_id: int) -> Proposal:
        proposal = self._store.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(
                f"Proposal #{proposal_id} does not exist", reason="unknown"
            )
        return proposal

    @contextmanager
    def _tracked(self):
        """Count rejected operations by error kind."""
        try:
            yield
        except GovernanceError as e:
            if self.metrics is not None:
                self.metrics.operation_errors.inc(label_value=e.kind)
            raise

    def _check_executable(
        self, proposal: Proposal, snap: ClockSnapshot, config: GovernanceConfig
    ) -> None:
        """Raise the first failing execution precondition, in order."""
        if proposal.executed:
            raise ProposalNotPassedError(
                f"Proposal #{proposal.id} was already executed", reason="executed"
            )
        if proposal.cancelled:
            raise ProposalNotPassedError(
                f"Proposal #{proposal.id} was cancelled", reason="cancelled"
            )
        if snap.block < proposal.end_block:
            raise TimelockNotExpiredError(
                f"Voting on proposal #{proposal.id} is open until block "
                f"{proposal.end_block} (now {snap.block})",
                reason="voting_open",
            )
        if snap.timestamp < proposal.execution_time:
            raise TimelockNotExpiredError(
                f"Timelock of proposal #{proposal.id} expires in "
                f"{proposal.timelock_remaining(snap.timestamp)}s",
                reason="delay",
            )
        if not quorum_reached(proposal, config.total_voting_power, config.quorum_percent):
            raise ProposalNotPassedError(
                f"Proposal #{proposal.id} missed quorum "
                f"({proposal.total_votes} < {config.quorum_votes})",
                reason="quorum",
            )
        if not majority_reached(proposal):
            raise ProposalNotPassedError(
                f"Proposal #{proposal.id} lacks a majority "
                f"({proposal.votes_for} for, {proposal.votes_against} against)",
                reason="majority",
            )
        verify_target(proposal, self._fingerprint)

    # ── Create ────────────────────────────────────────────────────────

    def create_proposal(
        self,
        caller: str,
        title: str,
        description: str,
        target: Optional[str] = None,
    ) -> int:
        """
        Create a proposal and return its id.

        The caller needs at least ``proposal_threshold`` voting power. When
        *target* is given its fingerprint is recorded; if the fingerprint
        service fails the proposal is still created without one, unless
        ``strict_fingerprint`` is enabled.
        """
        with self._tracked():
            snap = self.clock.snapshot()
            config = self._config

            if len(title) > MAX_TITLE_LENGTH:
                raise InvalidProposalError(
                    f"Proposal title exceeds {MAX_TITLE_LENGTH} characters", reason="title"
                )
            if len(description) > MAX_DESCRIPTION_LENGTH:
                raise InvalidProposalError(
                    f"Proposal description exceeds {MAX_DESCRIPTION_LENGTH} characters",
                    reason="description",
                )

            power = self._voting_power(caller)
            if power < config.proposal_threshold:
                raise NotAuthorizedError(
                    f"{caller} has {power} voting power, "
                    f"{config.proposal_threshold} required to propose",
                    reason="threshold",
                )

            fingerprint = None
            if target is not None:
                fingerprint = fetch_fingerprint(self._fingerprint, target)
                if fingerprint is None:
                    if config.strict_fingerprint:
                        raise InvalidContractHashError(
                            f"Cannot fingerprint target {target}", reason="unavailable"
                        )
                    logger.warning(
                        f"Proposal for target {target} created without a fingerprint; "
                        f"execution will not verify it"
                    )

            with self._create_lock:
                pid = self._store.next_id
                proposal = Proposal(
                    id=pid,
                    proposer=caller,
                    title=title,
                    description=description,
                    target=target,
                    expected_fingerprint=fingerprint,
                    start_block=snap.block,
                    end_block=snap.block + config.voting_period_blocks,
                    execution_time=snap.timestamp + config.timelock_delay_seconds,
                    created_at=snap.timestamp,
                )
                # Every stored proposal has a lock
                with self._locks_guard:
                    self._locks[pid] = threading.Lock()
                try:
                    self._store.insert(proposal)
                except Exception:
                    with self._locks_guard:
                        del self._locks[pid]
                    raise

        if self.metrics is not None:
            self.metrics.proposals_created.inc()
            self.metrics.proposal_count.set(self._store.count())

        logger.info(
            f"Proposal #{proposal.id} ({proposal.title}) created by {caller}: "
            f"blocks {proposal.start_block}..{proposal.end_block}, "
            f"executable from {proposal.execution_time}"
            + (f", target {target}" if target is not None else "")
        )
        return proposal.id

    # ── Vote ──────────────────────────────────────────────────────────

    def cast_vote(self, caller: str, proposal_id: int, support: bool) -> bool:
        """
        Cast *caller*'s current voting power FOR (True) or AGAINST (False).

        The vote record is written before the tally moves; a second vote by
        the same caller raises AlreadyVotedError.
        """
        with self._tracked():
            snap = self.clock.snapshot()
            with self._lock_for(proposal_id):
                proposal = self._load(proposal_id)

                if snap.block < proposal.start_block:
                    raise ProposalNotFoundError(
                        f"Voting on proposal #{proposal_id} starts at block "
                        f"{proposal.start_block}",
                        reason="not_started",
                    )
                if snap.block >= proposal.end_block:
                    raise ProposalExpiredError(
                        f"Voting on proposal #{proposal_id} ended at block {proposal.end_block}"
                    )
                if proposal.is_terminal:
                    raise ProposalNotPassedError(
                        f"Proposal #{proposal_id} is "
                        f"{'executed' if proposal.executed else 'cancelled'}",
                        reason="executed" if proposal.executed else "cancelled",
                    )
                if self._ledger.has_voted(proposal_id, caller):
                    raise AlreadyVotedError(
                        f"{caller} has already voted on proposal #{proposal_id}"
                    )

                weight = self._voting_power(caller)
                if weight < 0:
                    raise ConversionFailedError(
                        f"Voting power of {caller} is negative ({weight})",
                        reason="negative_power",
                    )

                self._ledger.insert(VoteRecord(
                    proposal_id=proposal_id,
                    voter=caller,
                    support=bool(support),
                    weight=weight,
                    timestamp=snap.timestamp,
                ))
                apply_vote(proposal, bool(support), weight)
                self._store.update(proposal)

        if self.metrics is not None:
            direction = Vote.name(support).lower()
            self.metrics.votes_cast.inc(label_value=direction)
            self.metrics.vote_weight.inc(weight, label_value=direction)

        logger.info(
            f"Vote: {caller} → {Vote.name(support)} on proposal #{proposal_id} "
            f"(weight={weight})"
        )
        return True

    # ── Execute ───────────────────────────────────────────────────────

    def execute_proposal(self, proposal_id: int) -> bool:
        """
        Mark a proposal executed.

        Requires: not executed or cancelled; voting closed; timelock elapsed;
        quorum and strict majority; and, when a target fingerprint was
        recorded, the target's current fingerprint must match it. Marking
        executed is the only effect.
        """
        with self._tracked():
            snap = self.clock.snapshot()
            config = self._config
            with self._lock_for(proposal_id):
                proposal = self._load(proposal_id)
                self._check_executable(proposal, snap, config)
                proposal.executed = True
                self._store.update(proposal)

        if self.metrics is not None:
            self.metrics.proposals_executed.inc()

        logger.info(
            f"Proposal #{proposal_id} EXECUTED "
            f"({proposal.votes_for} for, {proposal.votes_against} against)"
        )
        return True

    # ── Cancel ────────────────────────────────────────────────────────

    def cancel_proposal(self, caller: str, proposal_id: int) -> bool:
        """Cancel a proposal. Only its proposer may, at any time before execution."""
        with self._tracked():
            with self._lock_for(proposal_id):
                proposal = self._load(proposal_id)
                if caller != proposal.proposer:
                    raise NotAuthorizedError(
                        f"{caller} is not the proposer of proposal #{proposal_id}",
                        reason="not_proposer",
                    )
                if proposal.executed:
                    raise ProposalNotPassedError(
                        f"Proposal #{proposal_id} was already executed", reason="executed"
                    )
                if proposal.cancelled:
                    raise ProposalNotPassedError(
                        f"Proposal #{proposal_id} was already cancelled", reason="cancelled"
                    )
                proposal.cancelled = True
                self._store.update(proposal)

        if self.metrics is not None:
            self.metrics.proposals_cancelled.inc()

        logger.info(f"Proposal #{proposal_id} CANCELLED by {caller}")
        return True

    # ── Read-only queries ─────────────────────────────────────────────

    def can_execute(self, proposal_id: int) -> bool:
        """True iff ``execute_proposal`` would succeed now. Never raises."""
        proposal = self._store.get(proposal_id)
        if proposal is None:
            return False
        try:
            self._check_executable(proposal, self.clock.snapshot(), self._config)
        except GovernanceError:
            return False
        return True

    def status_report(self, proposal_id: int) -> StatusReport:
        snap = self.clock.snapshot()
        with self._tracked():
            proposal = self._load(proposal_id)
            return StatusReport(
                proposal_id=proposal.id,
                title=proposal.title,
                votes_for=render_decimal(proposal.votes_for),
                votes_against=render_decimal(proposal.votes_against),
                timelock_remaining=render_decimal(
                    proposal.timelock_remaining(snap.timestamp)
                ),
                status=proposal.label_at(snap.timestamp).name,
            )

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self._store.get(proposal_id)

    def get_user_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._ledger.get(proposal_id, voter)

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return self._ledger.votes_for_proposal(proposal_id)

    def get_proposal_count(self) -> int:
        return self._store.count()

    def proposals(self) -> Iterator[Proposal]:
        return iter(self._store)

    def proposal_state(self, proposal_id: int) -> Optional[ProposalState]:
        proposal = self._store.get(proposal_id)
        if proposal is None:
            return None
        return proposal.state_at(self.clock.current_block())

    def is_defeated(self, proposal_id: int) -> bool:
        """Voting closed, not terminal, and quorum or majority missed."""
        proposal = self._store.get(proposal_id)
        if proposal is None or proposal.is_terminal:
            return False
        if self.clock.current_block() < proposal.end_block:
            return False
        config = self._config
        return not (
            quorum_reached(proposal, config.total_voting_power, config.quorum_percent)
            and majority_reached(proposal)
        )

    # ── Parameters ────────────────────────────────────────────────────

    def update_parameters(self, **changes: Any) -> GovernanceConfig:
        """
        Replace governance parameters, e.g. ``total_voting_power`` when the
        outstanding supply changes. Existing proposals keep the windows they
        were created with; quorum is evaluated with the new values.
        """
        known = {f.name for f in fields(GovernanceConfig)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown governance parameters: {sorted(unknown)}")

        with self._params_lock:
            old = self._config
            new = replace(old, **changes)
            new.validate()
            self._config = new

        for key, value in changes.items():
            logger.info(f"Parameter '{key}' changed: {getattr(old, key)} → {value}")
        return replace(new)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameters": self._config.to_dict(),
            "proposals": self._store.to_dict(),
            "votes": self._ledger.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        clock: Clock,
        voting_power_fn: VotingPowerFn,
        fingerprint_fn: Optional[FingerprintFn] = None,
        metrics: Optional[GovernanceMetrics] = None,
    ) -> "GovernanceEngine":
        return cls(
            clock=clock,
            voting_power_fn=voting_power_fn,
            fingerprint_fn=fingerprint_fn,
            config=GovernanceConfig.from_dict(data.get("parameters", {})),
            metrics=metrics,
            store=ProposalStore.from_dict(data.get("proposals", [])),
            ledger=VoteLedger.from_dict(data.get("votes", [])),
        )

    def __repr__(self) -> str:
        return (
            f"<GovernanceEngine proposals={self._store.count()} "
            f"votes={len(self._ledger)}>"
        )
