"""Public interface definitions for all external collaborators.

Every registry, cache and store is accessed exclusively through the
abstract base classes defined in this package.  Concrete adapters live in
``vatcheck/providers/`` and are wired together in ``vatcheck/main.py``.

    Interface            ->  Concrete implementations
    -------------------------------------------------------------------
    IVatProvider         ->  ViesSoapProvider, ViesRestProvider,
                             IsvatProvider, VatlayerProvider,
                             ViesApiProvider, AeatProvider
    ICacheProvider       ->  MemoryCacheProvider
    IVerificationStore   ->  SQLiteVerificationStore
"""

from vatcheck.interfaces.cache_provider import ICacheProvider
from vatcheck.interfaces.vat_provider import IVatProvider
from vatcheck.interfaces.verification_store import IVerificationStore

__all__ = [
    "ICacheProvider",
    "IVatProvider",
    "IVerificationStore",
]
