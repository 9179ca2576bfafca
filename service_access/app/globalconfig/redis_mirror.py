"""
Redis mirror for the last good global config.
"""

import json
from typing import Any, Dict, Optional

import redis.asyncio as redis

from shared.logging import get_logger


class RedisConfigMirror:
    """Keeps the last successfully fetched ``globalConfig`` blob in Redis.

    Workers that start while the profile store is unreachable read the
    mirror instead of falling straight back to defaults. Every operation is
    best effort: failures are logged and reported as a miss.
    """

    KEY = "access:global_config:last_good"

    def __init__(self, redis_url: str, ttl_seconds: int = 86400, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("access.globalconfig.redis")
        self.redis: Optional[redis.Redis] = client

    async def start(self) -> bool:
        """Connect to Redis; returns False and stays disabled when unreachable."""
        try:
            if self.redis is None:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                    health_check_interval=30
                )
            await self.redis.ping()
        except Exception as e:
            self.logger.warning("Redis mirror unavailable", error=str(e))
            self.redis = None
            return False

        self.logger.info("Redis mirror started")
        return True

    async def stop(self):
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis mirror stopped")

    async def load(self) -> Optional[Dict[str, Any]]:
        """Return the mirrored settings blob (``{"globalConfig": {...}}``)."""
        if self.redis is None:
            return None
        try:
            cached = await self.redis.get(self.KEY)
            if not cached:
                return None
            data = json.loads(cached)
            return data if isinstance(data, dict) else None
        except Exception as e:
            self.logger.warning("Error reading global config mirror", error=str(e))
            return None

    async def save(self, settings: Dict[str, Any]) -> bool:
        if self.redis is None:
            return False
        try:
            payload = json.dumps({"globalConfig": settings.get("globalConfig")}, default=str)
            await self.redis.setex(self.KEY, self.ttl_seconds, payload)
            return True
        except Exception as e:
            self.logger.warning("Error writing global config mirror", error=str(e))
            return False

    async def health_check(self) -> bool:
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
