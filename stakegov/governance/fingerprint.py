"""
Implementation Fingerprints

A fingerprint is the keccak-256 digest of an implementation's code. A
proposal that names a target records the target's fingerprint at creation;
execution re-reads it and refuses to proceed unless the two match.
"""

import threading
from typing import Callable, Dict, Optional

from eth_utils import keccak

from ..constants import FINGERPRINT_SIZE
from ..exceptions import FingerprintUnavailableError, InvalidContractHashError
from ..logger import get_logger
from .proposals import Proposal

logger = get_logger(__name__)

FingerprintFn = Callable[[str], bytes]


def compute_fingerprint(code: bytes) -> bytes:
    """keccak-256 of *code*."""
    return keccak(code)


def fetch_fingerprint(fingerprint_fn: FingerprintFn, target: str) -> Optional[bytes]:
    """
    Query the fingerprint service for *target*.

    Returns None when the service fails for any reason (reporting the target
    unavailable, a transport error) or answers with something other than a
    FINGERPRINT_SIZE byte string.
    """
    try:
        fingerprint = fingerprint_fn(target)
    except FingerprintUnavailableError as e:
        logger.warning(f"Fingerprint unavailable for target {target}: {e}")
        return None
    except Exception as e:
        logger.warning(
            f"Fingerprint service failed for target {target}: {type(e).__name__}: {e}"
        )
        return None

    if not isinstance(fingerprint, (bytes, bytearray)) or len(fingerprint) != FINGERPRINT_SIZE:
        logger.warning(f"Fingerprint service returned a malformed digest for target {target}")
        return None
    return bytes(fingerprint)


def verify_target(proposal: Proposal, fingerprint_fn: FingerprintFn) -> None:
    """
    Confirm a proposal's target still matches the fingerprint recorded at
    creation.

    Proposals without a target or without a recorded fingerprint pass
    trivially. Raises InvalidContractHashError on service failure or
    mismatch.
    """
    if not proposal.requires_verification:
        return

    current = fetch_fingerprint(fingerprint_fn, proposal.target)
    if current is None:
        raise InvalidContractHashError(
            f"Cannot fingerprint target {proposal.target} of proposal #{proposal.id}",
            reason="unavailable",
        )
    if current != proposal.expected_fingerprint:
        logger.warning(
            f"Proposal #{proposal.id}: target {proposal.target} fingerprint "
            f"0x{current.hex()} != recorded 0x{proposal.expected_fingerprint.hex()}"
        )
        raise InvalidContractHashError(
            f"Target {proposal.target} of proposal #{proposal.id} does not match "
            f"its recorded fingerprint",
            reason="mismatch",
        )


def target_matches(proposal: Proposal, fingerprint_fn: FingerprintFn) -> bool:
    """Boolean form of ``verify_target``."""
    try:
        verify_target(proposal, fingerprint_fn)
    except InvalidContractHashError:
        return False
    return True


class CodeRegistry:
    """
    In-memory map of implementation reference → deployed code.

    ``fingerprint_of`` is a fingerprint service suitable for
    ``GovernanceEngine(fingerprint_fn=registry.fingerprint_of)``.
    """

    def __init__(self, code: Optional[Dict[str, bytes]] = None):
        self._code: Dict[str, bytes] = dict(code or {})
        self._lock = threading.Lock()

    def deploy(self, reference: str, code: bytes) -> bytes:
        """Store (or replace) the code behind *reference*; returns its fingerprint."""
        with self._lock:
            self._code[reference] = bytes(code)
        fingerprint = compute_fingerprint(code)
        logger.info(f"Deployed {reference} (fingerprint 0x{fingerprint.hex()})")
        return fingerprint

    def remove(self, reference: str) -> None:
        with self._lock:
            self._code.pop(reference, None)

    def fingerprint_of(self, reference: str) -> bytes:
        with self._lock:
            code = self._code.get(reference)
        if code is None:
            raise FingerprintUnavailableError(f"No code deployed at {reference}")
        return compute_fingerprint(code)

    def __contains__(self, reference: str) -> bool:
        return reference in self._code

    def to_dict(self) -> Dict[str, str]:
        with self._lock:
            return {ref: "0x" + code.hex() for ref, code in self._code.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "CodeRegistry":
        return cls({
            ref: bytes.fromhex(code[2:] if code.startswith("0x") else code)
            for ref, code in data.items()
        })

    def __repr__(self) -> str:
        return f"<CodeRegistry targets={len(self._code)}>"
