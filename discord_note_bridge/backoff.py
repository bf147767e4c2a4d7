"""Reconnect policy and login/gateway error classification.

Both pieces are pure: the policy maps ``(attempts, error kind)`` to a retry
decision and a delay, and :func:`classify_error` maps an exception raised by
``discord.py`` to an :class:`ErrorKind`. Neither touches the network, so the
connection manager's retry behaviour can be tested with plain values.
"""

from __future__ import annotations

import asyncio
import enum
import random
import re
from collections.abc import Callable
from dataclasses import dataclass

import aiohttp
import discord

# Gateway close codes that no amount of retrying will fix.
FATAL_CLOSE_CODES: dict[int, str] = {
    4004: "authentication failed",
    4010: "invalid shard",
    4011: "sharding required",
    4012: "invalid API version",
    4013: "invalid intents",
    4014: "disallowed intents",
}

_AUTH_PATTERN = re.compile(r"token|unauthori[sz]ed|\b401\b|\b4004\b")
_RATE_PATTERN = re.compile(r"rate.?limit|\b429\b|too many requests")
_NETWORK_PATTERN = re.compile(
    r"network|timeout|timed out|econn\w*|enotfound|getaddrinfo|connection|socket"
)

# Exponent cap so 2 ** attempts stays a small float.
_MAX_EXPONENT = 30


class ErrorKind(enum.Enum):
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self is not ErrorKind.AUTHENTICATION


@dataclass(frozen=True)
class Classification:
    """Result of classifying a login or gateway failure."""

    kind: ErrorKind
    detail: str
    retry_after: float | None = None


def gateway_close_code(exc: BaseException) -> int | None:
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def classify_error(exc: BaseException) -> Classification:
    """Classify an exception from ``Client.login`` or ``Client.connect``."""
    detail = str(exc) or type(exc).__name__

    if isinstance(exc, (discord.LoginFailure, discord.PrivilegedIntentsRequired)):
        return Classification(ErrorKind.AUTHENTICATION, detail)

    if isinstance(exc, discord.ConnectionClosed):
        code = gateway_close_code(exc)
        if code in FATAL_CLOSE_CODES:
            return Classification(
                ErrorKind.AUTHENTICATION, f"gateway close code {code}: {FATAL_CLOSE_CODES[code]}"
            )
        return Classification(ErrorKind.NETWORK, f"gateway closed (code={code})")

    if isinstance(exc, discord.RateLimited):
        return Classification(ErrorKind.RATE_LIMITED, detail, retry_after=exc.retry_after)

    if isinstance(exc, discord.HTTPException):
        if exc.status in (401, 403):
            return Classification(ErrorKind.AUTHENTICATION, detail)
        if exc.status == 429:
            return Classification(ErrorKind.RATE_LIMITED, detail)
        if exc.status >= 500:
            return Classification(ErrorKind.NETWORK, detail)

    if isinstance(
        exc, (discord.GatewayNotFound, aiohttp.ClientError, OSError, asyncio.TimeoutError)
    ):
        return Classification(ErrorKind.NETWORK, detail)

    lowered = detail.lower()
    if _AUTH_PATTERN.search(lowered):
        return Classification(ErrorKind.AUTHENTICATION, detail)
    if _RATE_PATTERN.search(lowered):
        return Classification(ErrorKind.RATE_LIMITED, detail)
    if _NETWORK_PATTERN.search(lowered):
        return Classification(ErrorKind.NETWORK, detail)
    return Classification(ErrorKind.UNKNOWN, detail)


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0
    reason: str = ""


@dataclass(frozen=True)
class ReconnectPolicy:
    """Exponential backoff with jitter and a bounded number of attempts.

    Attributes:
        base_delay: Delay in seconds before the first retry.
        max_delay: Upper bound for any computed delay.
        jitter_ratio: Extra random delay as a fraction of the backoff, in
            ``[0, jitter_ratio)``. Keep below 1 so delays stay monotonic.
        max_attempts: Retries allowed before giving up.
        stable_seconds: How long a session must stay ready before the
            attempt counter is reset.
    """

    base_delay: float = 5.0
    max_delay: float = 300.0
    jitter_ratio: float = 0.2
    max_attempts: int = 5
    stable_seconds: float = 60.0

    def backoff_for(self, attempts: int) -> float:
        """Deterministic part of the delay: ``min(base * 2**attempts, max)``."""
        exponent = min(max(attempts, 0), _MAX_EXPONENT)
        return min(self.base_delay * (2**exponent), self.max_delay)

    def compute_delay(self, attempts: int, rand: Callable[[], float] = random.random) -> float:
        backoff = self.backoff_for(attempts)
        jitter = backoff * self.jitter_ratio * min(max(rand(), 0.0), 1.0)
        return min(backoff + jitter, self.max_delay)

    def decide(
        self,
        attempts: int,
        kind: ErrorKind | None = None,
        *,
        retry_after: float | None = None,
        rand: Callable[[], float] = random.random,
    ) -> RetryDecision:
        if kind is not None and not kind.retryable:
            return RetryDecision(False, reason=f"{kind.value} failure is not retried")
        if attempts >= self.max_attempts:
            return RetryDecision(False, reason="max reconnect attempts reached")
        delay = self.compute_delay(attempts, rand)
        if retry_after is not None and retry_after > delay:
            delay = retry_after
        return RetryDecision(True, delay=delay)
