"""
Question cache with a fixed validity window

Entries live in process memory with lazy expiry. When REDIS_URL is set and
reachable the same entries are kept in Redis with SETEX instead.
"""
import redis
import json
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from oab_prep.config import settings
from oab_prep.schemas.exam import Question

logger = logging.getLogger(__name__)


class CacheService:
    """TTL cache for generated question sets"""

    KEY_TOPIC_PREFIX = 3

    def __init__(
        self,
        ttl: Optional[int] = None,
        redis_url: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl = ttl or settings.QUESTION_CACHE_TTL
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[Question]]] = {}
        self.redis_client = None

        if redis_url:
            try:
                self.redis_client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
                # Test connection
                self.redis_client.ping()
                logger.info("Redis connection established")
            except Exception as e:
                logger.warning(f"Redis connection failed: {str(e)}. Using in-process cache.")
                self.redis_client = None

    def generate_cache_key(
        self,
        subject: str,
        count: int,
        recent_topics: Sequence[str]
    ) -> str:
        """
        Generate deterministic cache key for generation parameters

        Only the first three recent topics take part in the key.

        Args:
            subject: Subject name or "Geral"
            count: Number of questions
            recent_topics: Topics passed to the generator

        Returns:
            Cache key string
        """
        topics = "_".join(str(t) for t in list(recent_topics)[:self.KEY_TOPIC_PREFIX])
        return f"{subject}_{count}_{topics}"

    def get(self, key: str) -> Optional[List[Question]]:
        """
        Get questions from cache

        Expired entries are dropped on lookup.

        Returns:
            Cached questions or None
        """
        if self.redis_client:
            return self._redis_get(key)

        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return None

        stored_at, questions = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            logger.debug(f"Cache expired: {key}")
            return None

        logger.info(f"Cache hit: {key}")
        return questions

    def set(self, key: str, questions: List[Question]) -> bool:
        """
        Store questions in cache

        Returns:
            Success status
        """
        if self.redis_client:
            return self._redis_set(key, questions)

        self._entries[key] = (self._clock(), questions)
        logger.info(f"Cache set: {key} (TTL: {self.ttl}s)")
        return True

    def _redis_get(self, key: str) -> Optional[List[Question]]:
        try:
            value = self.redis_client.get(key)
            if value:
                logger.info(f"Cache hit: {key}")
                return [Question.model_validate(q) for q in json.loads(value)]
            logger.debug(f"Cache miss: {key}")
            return None
        except Exception as e:
            logger.error(f"Cache get error: {str(e)}")
            return None

    def _redis_set(self, key: str, questions: List[Question]) -> bool:
        try:
            serialized = json.dumps([q.model_dump(mode="json") for q in questions])
            self.redis_client.setex(key, self.ttl, serialized)
            logger.info(f"Cache set: {key} (TTL: {self.ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error: {str(e)}")
            return False


# Global instance
cache_service = CacheService(redis_url=settings.REDIS_URL)
