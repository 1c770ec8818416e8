"""Learned counterparty-to-category store backends."""

import json
import os
from typing import Dict, Optional, Protocol, Tuple
import redis
from pydantic import ValidationError
from mpesa_engine.models import LearnedCategory
from mpesa_engine.utils.errors import CategoryStoreError
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "category"


def store_key(business_id: str, signature: str) -> str:
    return f"{KEY_PREFIX}:{business_id}:{signature}"


class CategoryStore(Protocol):
    """Read/write collaborator holding learned associations"""

    def get(self, business_id: str, signature: str) -> Optional[LearnedCategory]:
        ...

    def put(self, business_id: str, signature: str, learned: LearnedCategory) -> None:
        ...


class RedisCategoryStore:
    """
    Redis-backed learned category store.

    Values are JSON documents under 'category:<business_id>:<signature>'.
    Every Redis or decoding failure surfaces as CategoryStoreError; nothing is
    swallowed, since a lost association is a data-integrity problem.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_env(cls) -> "RedisCategoryStore":
        """Connect using REDIS_HOST ('host:port'), REDIS_DB and CATEGORY_TTL_SECONDS"""
        redis_host, redis_port = os.getenv("REDIS_HOST", "localhost:6379").split(':')
        client = redis.Redis(
            host=redis_host,
            port=int(redis_port),
            db=int(os.getenv("REDIS_DB", 0)),
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5
        )
        ttl = os.getenv("CATEGORY_TTL_SECONDS")
        logger.info("Using Redis category store", host=redis_host, port=redis_port)
        return cls(client, ttl_seconds=int(ttl) if ttl else None)

    def get(self, business_id: str, signature: str) -> Optional[LearnedCategory]:
        key = store_key(business_id, signature)
        try:
            value = self.client.get(key)
        except redis.RedisError as e:
            raise CategoryStoreError(f"Failed to read learned category {key}: {e}") from e

        if not value:
            return None

        try:
            return LearnedCategory(**json.loads(value))
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            raise CategoryStoreError(f"Corrupt learned category {key}: {e}") from e

    def put(self, business_id: str, signature: str, learned: LearnedCategory) -> None:
        key = store_key(business_id, signature)
        try:
            if self.ttl_seconds:
                self.client.setex(key, self.ttl_seconds, learned.model_dump_json())
            else:
                self.client.set(key, learned.model_dump_json())
        except redis.RedisError as e:
            raise CategoryStoreError(f"Failed to write learned category {key}: {e}") from e

        logger.debug("Stored learned category", key=key, category=learned.category)


class InMemoryCategoryStore:
    """Dictionary-backed store for demo mode and tests"""

    def __init__(self):
        self._entries: Dict[Tuple[str, str], LearnedCategory] = {}

    def get(self, business_id: str, signature: str) -> Optional[LearnedCategory]:
        return self._entries.get((business_id, signature))

    def put(self, business_id: str, signature: str, learned: LearnedCategory) -> None:
        self._entries[(business_id, signature)] = learned

    def __len__(self) -> int:
        return len(self._entries)


def build_category_store(backend: Optional[str] = None) -> CategoryStore:
    """Pick a backend from the argument or CATEGORY_STORE ('redis' or 'memory')"""
    backend = (backend or os.getenv("CATEGORY_STORE", "memory")).lower()
    if backend == "redis":
        return RedisCategoryStore.from_env()
    logger.info(f"Using in-memory category store ({backend} mode)")
    return InMemoryCategoryStore()
