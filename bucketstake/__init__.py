"""
Bucket Staking Package

Core imports are lazily loaded so that importing the package does not
configure logging. For direct module access, import from submodules:

    from bucketstake.staking import LifecycleEngine
    from bucketstake.config import load_config
    from bucketstake.exceptions import StakingError
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'LifecycleEngine':
        from .staking import LifecycleEngine
        return LifecycleEngine
    elif name == 'StakingConfig':
        from .config import StakingConfig
        return StakingConfig
    elif name == 'StakingError':
        from .exceptions import StakingError
        return StakingError
    raise AttributeError(f"module 'bucketstake' has no attribute {name!r}")

__all__ = ['LifecycleEngine', 'StakingConfig', 'StakingError']
