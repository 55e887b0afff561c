"""WordPress REST client and its response cache."""

from .cache import NullCache, RedisCache, create_cache
from .wordpress import WordPressClient
