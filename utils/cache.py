"""Caching utilities for the application"""
import os
from flask_caching import Cache
import logging

logger = logging.getLogger(__name__)

cache = Cache()

def init_cache(app):
    """Initialize caching with appropriate backend"""
    redis_url = os.environ.get('REDIS_URL')

    if redis_url:
        # Use Redis if available
        cache_config = {
            'CACHE_TYPE': 'RedisCache',
            'CACHE_REDIS_URL': redis_url,
            'CACHE_DEFAULT_TIMEOUT': 300  # 5 minutes default
        }
        logger.info("Using Redis for caching")
    else:
        # Fall back to simple in-memory cache
        cache_config = {
            'CACHE_TYPE': 'SimpleCache',
            'CACHE_DEFAULT_TIMEOUT': 300
        }
        logger.info("Using in-memory caching (Redis not configured)")

    app.config.update(cache_config)
    cache.init_app(app)
    return cache

def score_breakdown_cache_key(establishment, as_of):
    """Key versioned by updated_at, so a recalculation retires older entries"""
    version = establishment.updated_at.isoformat() if establishment.updated_at else 'never'
    return f"score_breakdown:{establishment.id}:{as_of.isoformat()}:{version}"

def cache_score_breakdown(establishment, as_of, data, timeout=None):
    """Cache a score breakdown (Config.BREAKDOWN_CACHE_SECONDS by default)"""
    if timeout is None:
        from config import Config
        timeout = Config.BREAKDOWN_CACHE_SECONDS

    cache_key = score_breakdown_cache_key(establishment, as_of)
    cache.set(cache_key, data, timeout=timeout)
    logger.debug(f"Cached score breakdown: {cache_key}")

def get_cached_score_breakdown(establishment, as_of):
    """Get cached score breakdown if available"""
    cache_key = score_breakdown_cache_key(establishment, as_of)
    data = cache.get(cache_key)

    if data is not None:
        logger.debug(f"Score breakdown cache hit: {cache_key}")

    return data

def get_cache_stats():
    """Get cache statistics"""
    stats = {
        'backend': cache.config.get('CACHE_TYPE', 'unknown') if cache.config else 'unknown',
        'available': True
    }

    if stats['backend'] == 'RedisCache':
        try:
            if hasattr(cache.cache, '_write_client'):
                client = cache.cache._write_client
                info = client.info()
                stats.update({
                    'used_memory': info.get('used_memory_human', 'N/A'),
                    'connected_clients': info.get('connected_clients', 0),
                    'total_commands': info.get('total_commands_processed', 0)
                })
        except Exception as e:
            logger.error(f"Failed to get Redis stats: {e}")
            stats['error'] = str(e)

    return stats
