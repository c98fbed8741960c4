"""Data models for the Aqara Airer integration."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import IntEnum


@dataclass
class TokenSession:
    """Access/refresh token pair with its expiry in epoch milliseconds."""

    access_token: str
    refresh_token: str
    expire_at: int

    def is_expired(self, now_ms: int) -> bool:
        """Return True when the access token must be refreshed before use."""
        return now_ms >= self.expire_at


class AirerMotion(IntEnum):
    """Motion direction reported by the airer_control attribute."""

    STOPPED = 0
    INCREASING = 1
    DECREASING = 2

    @classmethod
    def from_value(cls, value: int) -> AirerMotion:
        """Map a raw attribute value, treating unknown values as stopped."""
        try:
            return cls(value)
        except ValueError:
            return cls.STOPPED


@dataclass(frozen=True)
class CloudContract:
    """Response envelope shapes used by the target cloud.

    Attributes:
        authorize_via_redirect: Read the authorization code from the Location
            header of a redirect instead of a ``{code, result: {location}}``
            JSON body.
        token_in_result: Token fields are wrapped in a ``result`` object.
        resource_query_in_data: Wrap resource queries as
            ``{data: [{did, attrs}]}``.

    """

    authorize_via_redirect: bool = False
    token_in_result: bool = True
    resource_query_in_data: bool = False


@dataclass
class MotionEstimate:
    """An in-flight move of the airer, interpolated on the client."""

    start_level: int
    target_level: int
    start_time_ms: int
    total_duration_ms: float
    stopped: asyncio.Future[None] = field(repr=False)

    @property
    def motion(self) -> AirerMotion:
        """Return the direction of this move."""
        if self.target_level > self.start_level:
            return AirerMotion.INCREASING
        if self.target_level < self.start_level:
            return AirerMotion.DECREASING
        return AirerMotion.STOPPED

    def level_at(self, now_ms: int) -> int:
        """Return the estimated level at ``now_ms``, clamped to 0..100."""
        if self.total_duration_ms <= 0:
            fraction = 1.0
        else:
            fraction = (now_ms - self.start_time_ms) / self.total_duration_ms
        fraction = min(max(fraction, 0.0), 1.0)
        level = self.start_level + (self.target_level - self.start_level) * fraction
        return round(min(max(level, 0), 100))


@dataclass(slots=True)
class AirerState:
    """Snapshot of the airer polled by the coordinator."""

    level: int
    motion: AirerMotion
    light_on: bool
