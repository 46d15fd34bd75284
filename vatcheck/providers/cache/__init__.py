"""Cache providers.

In-memory TTL cache placed in front of the durable store so repeated
lookups of the same VAT number within the TTL never leave the process.
For multi-worker deployments, swap in a Redis adapter implementing
ICacheProvider without changing the verification service.
"""

from vatcheck.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
