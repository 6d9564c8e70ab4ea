"""
stakegov Exceptions

Typed errors returned by the governance module. Every error carries a stable
``kind`` string; errors that share a kind across several conditions also
carry a ``reason`` naming the condition that failed.
"""

from typing import Optional


class StakegovException(Exception):
    """Base exception for stakegov."""
    pass


class ConfigurationError(StakegovException):
    """Governance parameters are invalid."""
    pass


class GovernanceError(StakegovException):
    """Base governance exception."""

    kind = "GovernanceError"

    def __init__(self, message: str = "", reason: Optional[str] = None):
        super().__init__(message or self.kind)
        self.reason = reason

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "reason": self.reason,
            "message": str(self),
        }


class NotAuthorizedError(GovernanceError):
    """Insufficient voting power to propose, or non-proposer cancelling."""
    kind = "NotAuthorized"


class ProposalNotFoundError(GovernanceError):
    """Unknown proposal id, or vote cast before the start block."""
    kind = "ProposalNotFound"


class AlreadyVotedError(GovernanceError):
    """A vote record already exists for (proposal, voter)."""
    kind = "AlreadyVoted"


class ProposalNotPassedError(GovernanceError):
    """Proposal is executed/cancelled, or failed quorum or majority."""
    kind = "ProposalNotPassed"


class TimelockNotExpiredError(GovernanceError):
    """Voting window still open, or the wall-clock delay has not elapsed."""
    kind = "TimelockNotExpired"


class ProposalExpiredError(GovernanceError):
    """Vote cast at or after the end block."""
    kind = "ProposalExpired"


class InvalidContractHashError(GovernanceError):
    """Target fingerprint mismatch, or fingerprint service failure."""
    kind = "InvalidContractHash"


class ConversionFailedError(GovernanceError):
    """A numeric value could not be rendered as decimal text."""
    kind = "ConversionFailed"


class InvalidProposalError(GovernanceError):
    """Proposal text exceeds its length bound."""
    kind = "InvalidProposal"


class FingerprintUnavailableError(StakegovException):
    """Raised by fingerprint services when a target cannot be fingerprinted."""
    pass
