from .store import CacheHit, DirectoryCache, JobCache, NullCache

__all__ = ["CacheHit", "DirectoryCache", "JobCache", "NullCache"]
