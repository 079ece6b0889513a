"""
Response caching for the read-only API routes

Cached responses are tagged with the models they are built from. Writing a
model bumps its generation counter, which retires every key built on the old
generation without touching entries for other models.
"""

import functools

import redis
from flask import current_app, request

from pickem import cache

GENERATION_KEY = "generation_{}"


def model_generation(model_name):
    """Current generation for a model (0 until it is first invalidated)"""
    return cache.get(GENERATION_KEY.format(model_name)) or 0


def cached_route(timeout=300, key_prefix="view", models=()):
    """
    Cache a route's return value

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
        models: Model names whose writes should retire the cached response
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            generations = "_".join(f"{name}{model_generation(name)}" for name in models)
            cache_key = f"{key_prefix}_{generations}_{request.full_path}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            return result

        return wrapped

    return decorator


def invalidate_model_cache(model_name):
    """Retire every cached response built from this model"""
    key = GENERATION_KEY.format(model_name)
    try:
        cache.set(key, model_generation(model_name) + 1, timeout=0)
    except redis.exceptions.RedisError as e:
        # Stale entries still expire on their own timeout
        current_app.logger.error(f"Failed to invalidate {model_name} cache: {e}")
