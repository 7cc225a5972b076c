"""Proof freshness checking.

A proof is fresh while its age in whole days is within the policy's
validity window. The window comes from ``validity.ttl`` in one of two
encodings:

- ISO-8601 day duration: "P90D" (case-insensitive)
- Bare day count: "90d" (case-insensitive)

Anything else, or no policy at all, falls back to the domain default.
Boundary equality (age == ttl) is still fresh.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from bind_verifier.core.config import SECONDS_PER_DAY
from bind_verifier.exceptions import ProofExpired
from bind_verifier.policy.models import PolicySpec

log = logging.getLogger(__name__)

_ISO_DAYS = re.compile(r"P(\d+)D", re.IGNORECASE)
_SIMPLE_DAYS = re.compile(r"(\d+)d", re.IGNORECASE)

TTL_SOURCE_POLICY = "policy"
TTL_SOURCE_DEFAULT = "default"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_ttl_days(ttl: Optional[str]) -> Optional[int]:
    """Parse a TTL string into whole days, or None if not recognised."""
    if not ttl:
        return None
    match = _ISO_DAYS.fullmatch(ttl) or _SIMPLE_DAYS.fullmatch(ttl)
    if match is None:
        return None
    return int(match.group(1))


def as_utc(ts: datetime) -> datetime:
    # Naive timestamps from the API are UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def proof_age_days(proved_at: datetime, now: datetime) -> int:
    """Whole days elapsed since proved_at, truncated toward zero."""
    elapsed = (as_utc(now) - as_utc(proved_at)).total_seconds()
    return math.trunc(elapsed / SECONDS_PER_DAY)


@dataclass(frozen=True)
class FreshnessResult:
    proved_at: datetime
    age_days: int
    ttl_days: int
    ttl_source: str

    @property
    def ttl_is_default(self) -> bool:
        return self.ttl_source == TTL_SOURCE_DEFAULT


class FreshnessChecker:
    """Compares proof age against the policy validity window.

    Args:
        default_ttl_days: Window used when the policy does not provide one.
        clock: Returns the current time. Defaults to UTC now.
        expired_hint: Remediation text attached to ProofExpired.
    """

    def __init__(
        self,
        default_ttl_days: int,
        clock: Callable[[], datetime] = utc_now,
        expired_hint: Optional[str] = None,
    ):
        self.default_ttl_days = default_ttl_days
        self.clock = clock
        self.expired_hint = expired_hint

    def resolve_ttl(self, policy: Optional[PolicySpec]) -> Tuple[int, str]:
        """Return (ttl_days, source) for the policy, falling back to the default."""
        raw = policy.ttl if policy is not None else None
        days = parse_ttl_days(raw)
        if days is None:
            if raw:
                log.warning(f"Unrecognised policy TTL {raw!r}, using default of {self.default_ttl_days} days")
            return self.default_ttl_days, TTL_SOURCE_DEFAULT
        return days, TTL_SOURCE_POLICY

    def check(
        self,
        completed_at: Optional[datetime],
        fallback: datetime,
        policy: Optional[PolicySpec],
    ) -> FreshnessResult:
        """Check proof freshness.

        Args:
            completed_at: Proof completion time, if known.
            fallback: Creation time of the job or share, used when
                completed_at is missing.
            policy: Governing policy, or None when it could not be resolved.

        Raises:
            ProofExpired: If the proof is older than the TTL.
        """
        proved_at = completed_at or fallback
        age = proof_age_days(proved_at, self.clock())
        ttl_days, source = self.resolve_ttl(policy)

        if age > ttl_days:
            raise ProofExpired(age, ttl_days, hint=self.expired_hint)

        return FreshnessResult(
            proved_at=proved_at,
            age_days=age,
            ttl_days=ttl_days,
            ttl_source=source,
        )
