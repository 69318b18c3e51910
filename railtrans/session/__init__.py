"""
OTP challenge storage.
Supports both InMemoryOtpStore and RedisOtpStore.
"""

from .otp_store import InMemoryOtpStore, OtpChallenge, RedisOtpStore, challenge_key

__all__ = ["InMemoryOtpStore", "OtpChallenge", "RedisOtpStore", "challenge_key"]
