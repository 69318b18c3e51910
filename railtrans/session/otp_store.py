"""
OTP challenge stores.

A challenge lives under one key per (role, email) and expires on its own:
Redis via TTL, the in-memory store lazily on read.
"""
import json
import logging
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass
class OtpChallenge:
    code: str
    expires_at: float
    last_sent_at: float
    attempts: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def challenge_key(role: str, email: str) -> str:
    return f"{role}::{email}"


class InMemoryOtpStore:
    """
    Process-local store, used when REDIS_URL is not configured.
    Challenges are lost on restart.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._challenges: Dict[str, OtpChallenge] = {}
        self._clock = clock

    def get(self, key: str) -> Optional[OtpChallenge]:
        challenge = self._challenges.get(key)
        if challenge is not None and challenge.is_expired(self._clock()):
            del self._challenges[key]
            return None
        return challenge

    def save(self, key: str, challenge: OtpChallenge) -> None:
        self._challenges[key] = challenge

    def delete(self, key: str) -> None:
        self._challenges.pop(key, None)

    def ping(self) -> bool:
        return True


class RedisOtpStore:
    """
    Redis-backed store. Each challenge is a JSON value under otp:{role}:{email}
    with a TTL matching its remaining lifetime.
    """

    def __init__(self, redis_url: str, clock: Callable[[], float] = time.time) -> None:
        self._redis = Redis.from_url(redis_url, decode_responses=False)
        self._clock = clock

        try:
            self._redis.ping()
            logger.info(f"RedisOtpStore initialized: redis_url={redis_url}")
        except RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    def _key(self, key: str) -> str:
        role, _, email = key.partition("::")
        return f"otp:{role}:{email}"

    def get(self, key: str) -> Optional[OtpChallenge]:
        try:
            data = self._redis.get(self._key(key))
        except RedisError as e:
            logger.error(f"Failed to read OTP challenge from Redis: key={self._key(key)}, error={e}")
            raise
        if not data:
            return None
        challenge = OtpChallenge(**json.loads(data.decode("utf-8")))
        if challenge.is_expired(self._clock()):
            return None
        return challenge

    def save(self, key: str, challenge: OtpChallenge) -> None:
        ttl = max(1, int(challenge.expires_at - self._clock()))
        try:
            self._redis.setex(self._key(key), ttl, json.dumps(asdict(challenge)).encode("utf-8"))
            logger.debug(f"OTP challenge saved to Redis: key={self._key(key)}, ttl={ttl}s")
        except RedisError as e:
            logger.error(f"Failed to save OTP challenge to Redis: key={self._key(key)}, error={e}")
            raise

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except RedisError as e:
            logger.error(f"Failed to delete OTP challenge from Redis: key={self._key(key)}, error={e}")

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False
