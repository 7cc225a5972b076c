"""Best-effort policy resolution.

A policy is located by trying an ordered list of strategies, each of which
either finds the policy or does not. The first success wins. When every
strategy comes up empty the result is an explicit PolicyUnresolved, never
a bare None, and the caller continues without policy validation.

Strategy failures (API errors, malformed documents) are recoverable: they
are recorded as attempts and the next strategy is tried.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from bind_verifier.exceptions import BindApiError, PolicyUnavailable
from bind_verifier.policy.models import PolicySpec

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyStrategy:
    """Named lookup returning the policy for an id, or None."""
    name: str
    lookup: Callable[[str], Optional[PolicySpec]]


@dataclass(frozen=True)
class PolicyResolved:
    policy: PolicySpec
    source: str
    attempts: Sequence[str] = ()


@dataclass(frozen=True)
class PolicyUnresolved:
    policy_id: str
    attempts: Sequence[str] = ()

    def as_error(self) -> PolicyUnavailable:
        return PolicyUnavailable(f"Policy not found: {self.policy_id}")


PolicyResolution = Union[PolicyResolved, PolicyUnresolved]


def embedded(document: Optional[Union[PolicySpec, Dict[str, Any]]]) -> PolicyStrategy:
    """Use a policy specification attached to the shared proof.

    The document is validated on lookup, so a malformed attachment is a
    failed attempt rather than a failed fetch.
    """

    def attached(_policy_id: str) -> Optional[PolicySpec]:
        if document is None:
            return None
        if isinstance(document, PolicySpec):
            return document
        return PolicySpec.model_validate(document)

    return PolicyStrategy("embedded", attached)


def direct_lookup(client) -> PolicyStrategy:
    """Fetch the policy by id."""
    return PolicyStrategy("lookup", client.get_policy)


def listing_scan(client) -> PolicyStrategy:
    """Scan the full policy listing for a matching id."""

    def scan(policy_id: str) -> Optional[PolicySpec]:
        return next((p for p in client.list_policies() if p.id == policy_id), None)

    return PolicyStrategy("listing", scan)


def resolve_policy(policy_id: str, strategies: Sequence[PolicyStrategy]) -> PolicyResolution:
    """Try each strategy in order, short-circuiting on the first match."""
    attempts: List[str] = []
    for strategy in strategies:
        try:
            policy = strategy.lookup(policy_id)
        except (BindApiError, ValidationError) as e:
            log.warning(f"Policy {strategy.name} failed for {policy_id}: {e}")
            attempts.append(f"{strategy.name}: failed ({_short(e)})")
            continue
        if policy is not None:
            log.debug(f"Policy {policy_id} resolved via {strategy.name}")
            return PolicyResolved(policy=policy, source=strategy.name, attempts=tuple(attempts))
        attempts.append(f"{strategy.name}: not found")

    log.warning(f"Policy {policy_id} unresolved after {len(attempts)} attempts")
    return PolicyUnresolved(policy_id=policy_id, attempts=tuple(attempts))


def _short(exc: Exception) -> str:
    return str(exc).splitlines()[0] if str(exc) else type(exc).__name__
