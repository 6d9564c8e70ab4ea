"""
stakegov TOML Configuration Loader

Loads every section of config.toml with environment variable overrides.
Each section is a dataclass with ``from_dict`` and ``apply_env``.

Environment variable mapping:
    [governance] quorum_percent → STAKEGOV_QUORUM_PERCENT
    [clock] block_time          → STAKEGOV_BLOCK_TIME
    [state] path                → STAKEGOV_STATE_FILE
    ...
"""

from __future__ import annotations

import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..constants import (
    BLOCK_TIME,
    GENESIS_TIME,
    GOVERNANCE_PROPOSAL_THRESHOLD,
    GOVERNANCE_QUORUM_PERCENT,
    GOVERNANCE_TIMELOCK_DELAY_SECONDS,
    GOVERNANCE_TOTAL_VOTING_POWER,
    GOVERNANCE_VOTING_PERIOD_BLOCKS,
    parse_bool,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class GovernanceConfig:
    """
    [governance] section.

    ``total_voting_power`` is the fixed quorum denominator. It is not read
    from the ledger; change it through ``GovernanceEngine.update_parameters``.
    """
    voting_period_blocks: int = GOVERNANCE_VOTING_PERIOD_BLOCKS
    timelock_delay_seconds: int = GOVERNANCE_TIMELOCK_DELAY_SECONDS
    quorum_percent: int = GOVERNANCE_QUORUM_PERCENT
    proposal_threshold: int = GOVERNANCE_PROPOSAL_THRESHOLD
    total_voting_power: int = GOVERNANCE_TOTAL_VOTING_POWER
    strict_fingerprint: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            voting_period_blocks=data.get("voting_period_blocks", GOVERNANCE_VOTING_PERIOD_BLOCKS),
            timelock_delay_seconds=data.get("timelock_delay_seconds", GOVERNANCE_TIMELOCK_DELAY_SECONDS),
            quorum_percent=data.get("quorum_percent", GOVERNANCE_QUORUM_PERCENT),
            proposal_threshold=data.get("proposal_threshold", GOVERNANCE_PROPOSAL_THRESHOLD),
            total_voting_power=data.get("total_voting_power", GOVERNANCE_TOTAL_VOTING_POWER),
            strict_fingerprint=data.get("strict_fingerprint", False),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("STAKEGOV_VOTING_PERIOD_BLOCKS"):
            self.voting_period_blocks = int(v)
        if v := os.environ.get("STAKEGOV_TIMELOCK_DELAY_SECONDS"):
            self.timelock_delay_seconds = int(v)
        if v := os.environ.get("STAKEGOV_QUORUM_PERCENT"):
            self.quorum_percent = int(v)
        if v := os.environ.get("STAKEGOV_PROPOSAL_THRESHOLD"):
            self.proposal_threshold = int(v)
        if v := os.environ.get("STAKEGOV_TOTAL_VOTING_POWER"):
            self.total_voting_power = int(v)
        if v := os.environ.get("STAKEGOV_STRICT_FINGERPRINT"):
            self.strict_fingerprint = parse_bool(v) is True

    def validate(self) -> None:
        """Raise ConfigurationError if any parameter is out of range."""
        if self.voting_period_blocks < 1:
            raise ConfigurationError(
                f"voting_period_blocks must be >= 1 (got {self.voting_period_blocks})"
            )
        if self.timelock_delay_seconds < 0:
            raise ConfigurationError(
                f"timelock_delay_seconds must be >= 0 (got {self.timelock_delay_seconds})"
            )
        if not 0 <= self.quorum_percent <= 100:
            raise ConfigurationError(
                f"quorum_percent must be within 0..100 (got {self.quorum_percent})"
            )
        if self.proposal_threshold < 0:
            raise ConfigurationError(
                f"proposal_threshold must be >= 0 (got {self.proposal_threshold})"
            )
        if self.total_voting_power < 0:
            raise ConfigurationError(
                f"total_voting_power must be >= 0 (got {self.total_voting_power})"
            )

    @property
    def quorum_votes(self) -> int:
        """Minimum for + against weight, floor(total * percent / 100)."""
        return self.total_voting_power * self.quorum_percent // 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClockConfig:
    """[clock] section used by SystemClock."""
    block_time: int = BLOCK_TIME
    genesis_time: int = GENESIS_TIME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClockConfig":
        return cls(
            block_time=data.get("block_time", BLOCK_TIME),
            genesis_time=data.get("genesis_time", GENESIS_TIME),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("STAKEGOV_BLOCK_TIME"):
            self.block_time = int(v)
        if v := os.environ.get("STAKEGOV_GENESIS_TIME"):
            self.genesis_time = int(v)

    def validate(self) -> None:
        if self.block_time < 1:
            raise ConfigurationError(f"block_time must be >= 1 (got {self.block_time})")


@dataclass
class StateConfig:
    """[state] section, where the CLI keeps its JSON snapshot."""
    path: str = "stakegov_state.json"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateConfig":
        return cls(path=data.get("path", "stakegov_state.json"))

    def apply_env(self) -> None:
        if v := os.environ.get("STAKEGOV_STATE_FILE"):
            self.path = v


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class StakegovConfig:
    """
    Unified configuration.

    Loads every section of config.toml and applies environment variable
    overrides.
    """
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    clock: ClockConfig = field(default_factory=ClockConfig)
    state: StateConfig = field(default_factory=StateConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakegovConfig":
        """Create StakegovConfig from a parsed TOML dict."""
        return cls(
            governance=GovernanceConfig.from_dict(data.get("governance", {})),
            clock=ClockConfig.from_dict(data.get("clock", {})),
            state=StateConfig.from_dict(data.get("state", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "StakegovConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides applied).

        Args:
            config_path: Path to config.toml

        Returns:
            StakegovConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug("Config file not found: %s, using defaults", config_path)
            cfg = cls()
        else:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
            cfg = cls.from_dict(raw)

        cfg.apply_env()
        cfg.validate()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governance.apply_env()
        self.clock.apply_env()
        self.state.apply_env()

    def validate(self) -> None:
        self.governance.validate()
        self.clock.validate()


def load_config(path: Optional[str] = None) -> StakegovConfig:
    """
    Load configuration.

    Resolution order:
        1. Explicit *path* argument
        2. STAKEGOV_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("STAKEGOV_CONFIG", "config.toml")

    return StakegovConfig.from_file(path)
