"""
Core infrastructure package for the MIPS scoring engine.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities
- The engine's error taxonomy
- A per-key asyncio lock registry

Re-exports let other modules write:

    from mips_engine.core import get_settings, get_db_pool, InputError

instead of importing from each submodule.
"""

# =============================================================================
# Re-exports from mips_engine.core.config
# =============================================================================
from mips_engine.core.config import Settings, get_settings

# =============================================================================
# Re-exports from mips_engine.core.database
# =============================================================================
from mips_engine.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from mips_engine.core.dependencies
# =============================================================================
from mips_engine.core.dependencies import (
    get_db_session,
    get_settings_dependency,
    SettingsDep,
    DBSessionDep,
)

# =============================================================================
# Re-exports from mips_engine.core.exceptions
# =============================================================================
from mips_engine.core.exceptions import (
    MIPSEngineError,
    InputError,
    NotFoundError,
    DataUnavailableError,
    ConfigurationError,
    validate_identifiers,
    validate_performance_year,
)

# =============================================================================
# Re-exports from mips_engine.core.locks
# =============================================================================
from mips_engine.core.locks import KeyedAsyncLock

__all__ = [
    # Configuration management
    'Settings',
    'get_settings',
    # Database pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
    # FastAPI dependency injection
    'get_db_session',
    'get_settings_dependency',
    'SettingsDep',
    'DBSessionDep',
    # Errors
    'MIPSEngineError',
    'InputError',
    'NotFoundError',
    'DataUnavailableError',
    'ConfigurationError',
    'validate_identifiers',
    'validate_performance_year',
    # Concurrency
    'KeyedAsyncLock',
]
