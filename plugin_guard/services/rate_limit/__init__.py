from .bucket import RateLimitBucket
from .state_cache import RateLimitStateCache

__all__ = ["RateLimitBucket", "RateLimitStateCache"]
