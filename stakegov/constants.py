"""
stakegov Constants

This module consolidates the global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE GOVERNANCE VALUES BELOW ARE THE DEFAULT PARAMETERS OF THE MODULE. CHANGING THEM
# CHANGES WHO MAY PROPOSE AND WHAT PASSES. OVERRIDE THEM THROUGH config.toml OR THE STAKEGOV_*
# ENVIRONMENT VARIABLES RATHER THAN EDITING THIS FILE.

# ==================================================================================
# CHAIN CADENCE
# ==================================================================================
BLOCK_TIME = 600  # 10 minute blocks, 1008 blocks ~ 1 week
GENESIS_TIME = 0


# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
GOVERNANCE_VOTING_PERIOD_BLOCKS = 1008
GOVERNANCE_TIMELOCK_DELAY_SECONDS = 86400  # 24 hours
GOVERNANCE_QUORUM_PERCENT = 20
GOVERNANCE_PROPOSAL_THRESHOLD = 1_000_000_000
GOVERNANCE_TOTAL_VOTING_POWER = 100_000_000_000

# Vote directions
GOVERNANCE_VOTE_FOR = True
GOVERNANCE_VOTE_AGAINST = False


# ==================================================================================
# PROPOSAL LIMITS
# ==================================================================================
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500

# keccak-256 digest size
FINGERPRINT_SIZE = 32


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
