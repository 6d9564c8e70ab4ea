"""
stakegov Package

Stake-weighted proposal governance with timelocked, fingerprint-verified
execution.

Core imports are lazily loaded so that importing a submodule does not pull
in the whole package:

    from stakegov.governance import GovernanceEngine, ManualClock
    from stakegov.exceptions import ProposalNotPassedError
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy access to the most used entry points."""
    if name == 'GovernanceEngine':
        from .governance import GovernanceEngine
        return GovernanceEngine
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'stakegov' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'load_config', 'GovernanceError']
