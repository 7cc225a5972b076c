"""Disclosed claim interpretation.

Maps a raw claim value from a verified credential to a decision-level
result, dispatching on the target output's derivation:

- BAND: the value is an index into the policy's ordered band table, with
  a built-in default table and finally a synthesized "Band <n>" label.
- PASS_FAIL: 1, True or "1" is the positive outcome; anything else is not.
- Other kinds: the raw value is shown as-is.

Interpretation runs after cryptographic verification has succeeded, so it
never raises; it degrades to synthesized output instead.
"""

import logging
import math
from dataclasses import dataclass
from functools import singledispatchmethod
from typing import Any, Mapping, Optional, Sequence, Tuple

from bind_verifier.core.config import GENERIC_CLAIM_NAME
from bind_verifier.policy.models import (
    BandDerivation,
    DerivationKind,
    OpaqueDerivation,
    PassFailDerivation,
    PolicySpec,
)

log = logging.getLogger(__name__)

LABEL_SOURCE_POLICY = "policy"
LABEL_SOURCE_DEFAULT = "default"
LABEL_SOURCE_SYNTHESIZED = "synthesized"

POSITIVE_LABEL = "APPROVED"
NEGATIVE_LABEL = "NOT APPROVED"


@dataclass(frozen=True)
class ClaimResolution:
    """Interpreted claim.

    Attributes:
        claim_name: Claim key the value was read from (None if absent).
        raw_value: Value as disclosed in the credential.
        kind: Derivation kind used for interpretation.
        label: Human-meaningful result (band label or approval label).
        source: Where the label came from (policy, default, synthesized).
        index: Band index, for BAND outputs.
        positive: Outcome, for PASS_FAIL outputs.
    """
    claim_name: Optional[str]
    raw_value: Any
    kind: str
    label: str
    source: str
    index: Optional[int] = None
    positive: Optional[bool] = None


def band_index(value: Any) -> int:
    """Coerce a raw claim to a band index.

    Numbers are used directly, numeric strings are parsed, everything else
    (booleans, None, unparseable strings) is index 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            log.warning(f"Claim value {value!r} is not numeric, using band index 0")
            return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return int(value)
    return 0


def is_positive(value: Any) -> bool:
    """Pass/fail outcome: only 1, True and "1" are positive."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return value == "1"


class ClaimInterpreter:
    """Resolves the target claim of a credential.

    Args:
        target_output: Canonical claim name (the policy output name).
        target_kind: Derivation kind assumed when no policy is available.
        default_bands: Built-in ordered band labels.
        fallback_claim: Secondary claim name read when the canonical one
            is absent.
    """

    def __init__(
        self,
        target_output: str,
        target_kind: DerivationKind,
        default_bands: Sequence[str] = (),
        fallback_claim: str = GENERIC_CLAIM_NAME,
    ):
        self.target_output = target_output
        self.target_kind = target_kind
        self.default_bands = list(default_bands)
        self.fallback_claim = fallback_claim

    def claim_names(self) -> Tuple[str, str]:
        return (self.target_output, self.fallback_claim)

    def read_claim(self, claims: Mapping[str, Any]) -> Tuple[Optional[str], Any]:
        for name in self.claim_names():
            value = claims.get(name)
            if value is not None:
                return name, value
        return None, None

    def derivation_for(self, policy: Optional[PolicySpec]):
        """Target output derivation from the policy, or the domain default."""
        if policy is not None:
            output = policy.find_output(self.target_output)
            if output is not None:
                return output.derive
        if self.target_kind is DerivationKind.BAND:
            return BandDerivation()
        return PassFailDerivation()

    def resolve(self, claims: Mapping[str, Any], policy: Optional[PolicySpec] = None) -> ClaimResolution:
        name, value = self.read_claim(claims)
        return self._interpret(self.derivation_for(policy), name, value)

    def resolve_band(self, claims: Mapping[str, Any], policy: Optional[PolicySpec] = None) -> str:
        """Band label for the target claim."""
        name, value = self.read_claim(claims)
        derive = self.derivation_for(policy)
        if not isinstance(derive, BandDerivation):
            derive = BandDerivation()
        return self._interpret(derive, name, value).label

    def resolve_pass_fail(self, claims: Mapping[str, Any]) -> bool:
        """Approval outcome for the target claim."""
        _, value = self.read_claim(claims)
        return is_positive(value)

    @singledispatchmethod
    def _interpret(self, derive, name, value) -> ClaimResolution:
        # Unregistered derivations read like opaque ones
        return ClaimResolution(
            claim_name=name,
            raw_value=value,
            kind=getattr(derive, "kind", None) or type(derive).__name__,
            label=str(value),
            source=LABEL_SOURCE_SYNTHESIZED,
        )

    @_interpret.register
    def _(self, derive: BandDerivation, name, value) -> ClaimResolution:
        index = band_index(value)
        if 0 <= index < len(derive.bands):
            label, source = derive.bands[index].label, LABEL_SOURCE_POLICY
        elif 0 <= index < len(self.default_bands):
            label, source = self.default_bands[index], LABEL_SOURCE_DEFAULT
        else:
            label, source = f"Band {index}", LABEL_SOURCE_SYNTHESIZED
        return ClaimResolution(
            claim_name=name,
            raw_value=value,
            kind=DerivationKind.BAND.value,
            label=label,
            source=source,
            index=index,
        )

    @_interpret.register
    def _(self, derive: PassFailDerivation, name, value) -> ClaimResolution:
        positive = is_positive(value)
        return ClaimResolution(
            claim_name=name,
            raw_value=value,
            kind=DerivationKind.PASS_FAIL.value,
            label=POSITIVE_LABEL if positive else NEGATIVE_LABEL,
            source=LABEL_SOURCE_DEFAULT,
            positive=positive,
        )

    @_interpret.register
    def _(self, derive: OpaqueDerivation, name, value) -> ClaimResolution:
        return ClaimResolution(
            claim_name=name,
            raw_value=value,
            kind=derive.kind,
            label=str(value),
            source=LABEL_SOURCE_SYNTHESIZED,
        )
