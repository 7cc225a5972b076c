"""Decision domains.

A domain binds the generic verification workflow to one policy family:
which output the decision reads, what subject the policy must describe,
the default validity window and band table, and how the interpreted
claim turns into guidance for the decision-maker.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from bind_verifier.claims import ClaimInterpreter, ClaimResolution
from bind_verifier.freshness import FreshnessChecker, utc_now
from bind_verifier.policy.models import DerivationKind
from bind_verifier.policy.validator import PolicyRequirements, PolicyValidator
from bind_verifier.scoring import (
    CREDIT_SCORE_RULES,
    VEHICLE_RISK_PROFILE,
    ReferenceScorer,
    RulePreview,
    ScorePreview,
    preview_rules,
)


def derive_circuit_id(policy_id: str, version: str) -> str:
    """Circuit id for a policy version.

    bind.demo.credit-score @ 0.1.0 -> bind.demo.credit_score.v0_1_0
    """
    return f"{policy_id.replace('-', '_')}.v{version.replace('.', '_')}"


@dataclass(frozen=True)
class Guidance:
    recommendation: str
    notes: Sequence[str] = ()


@dataclass(frozen=True)
class Decision:
    outcome: str
    recommendation: Optional[str] = None
    notes: Sequence[str] = ()


@dataclass(frozen=True)
class DomainProfile:
    """Everything the workflow needs to know about one policy family."""
    name: str
    title: str
    policy_id: str
    policy_version: str
    target_output: str
    target_kind: DerivationKind
    default_ttl_days: int
    expired_hint: str
    subject_type: Optional[str] = None
    default_bands: Sequence[str] = ()
    guidance: Mapping[str, Guidance] = field(default_factory=dict)
    privacy_notes: Sequence[str] = ()
    sample_inputs: Mapping[str, str] = field(default_factory=dict)
    preview: Optional[Callable[[Mapping[str, float]], Union[ScorePreview, RulePreview]]] = None

    @property
    def circuit_id(self) -> str:
        return derive_circuit_id(self.policy_id, self.policy_version)

    def requirements(self) -> PolicyRequirements:
        return PolicyRequirements(
            target_output=self.target_output,
            target_kind=self.target_kind,
            subject_type=self.subject_type,
        )

    def validator(self) -> PolicyValidator:
        return PolicyValidator(self.requirements())

    def freshness_checker(self, clock: Callable[[], datetime] = utc_now) -> FreshnessChecker:
        return FreshnessChecker(self.default_ttl_days, clock=clock, expired_hint=self.expired_hint)

    def interpreter(self) -> ClaimInterpreter:
        return ClaimInterpreter(
            target_output=self.target_output,
            target_kind=self.target_kind,
            default_bands=self.default_bands,
        )

    def decide(self, resolution: ClaimResolution) -> Decision:
        guidance = self.guidance.get(resolution.label)
        if guidance is None:
            return Decision(outcome=resolution.label)
        return Decision(
            outcome=resolution.label,
            recommendation=guidance.recommendation,
            notes=guidance.notes,
        )


# =============================================================================
# Vehicle risk band (insurer / fleet manager)
# =============================================================================

RISK_BANDS = ("HIGH", "MEDIUM", "LOW")

VEHICLE_RISK = DomainProfile(
    name="vehicle-risk",
    title="Vehicle Risk Assessment",
    policy_id="bind.mobility.basicriskband",
    policy_version="0.1.0",
    target_output="riskBand",
    target_kind=DerivationKind.BAND,
    subject_type="vehicle",
    default_ttl_days=90,
    default_bands=RISK_BANDS,
    expired_hint="For insurance underwriting, request a fresh proof from the vehicle owner.",
    guidance={
        "LOW": Guidance("APPROVE", (
            "Vehicle shows excellent maintenance and usage patterns",
            "Eligible for preferred rates and coverage options",
            "Consider usage-based insurance discount",
        )),
        "MEDIUM": Guidance("REVIEW", (
            "Vehicle shows moderate risk indicators",
            "Standard rates apply",
            "Consider requesting additional documentation",
        )),
        "HIGH": Guidance("CAUTION", (
            "Vehicle shows significant risk factors",
            "May require inspection before coverage",
            "Higher deductible or limited coverage recommended",
        )),
    },
    privacy_notes=(
        "Actual mileage driven",
        "Max speed recorded",
        "Raw telemetry data points",
        "Driving patterns or locations",
    ),
    sample_inputs={
        "mileage_90d": "2500",
        "data_points": "450",
        "speed_max": "72",
    },
    preview=ReferenceScorer(VEHICLE_RISK_PROFILE).score,
)

# =============================================================================
# Credit score (lender)
# =============================================================================

CREDIT_SCORE = DomainProfile(
    name="credit-score",
    title="Loan Application",
    policy_id="bind.demo.credit-score",
    policy_version="0.1.0",
    target_output="approved",
    target_kind=DerivationKind.PASS_FAIL,
    default_ttl_days=30,
    expired_hint="Ask the applicant to generate a fresh credit proof.",
    privacy_notes=(
        "Actual income amount",
        "Actual debt amount",
        "Debt-to-income ratio",
        "Credit history details",
    ),
    sample_inputs={
        "income": "75000",
        "debt": "25000",
        "credit_history_months": "48",
    },
    preview=lambda inputs: preview_rules(CREDIT_SCORE_RULES, inputs),
)

DOMAINS: Dict[str, DomainProfile] = {d.name: d for d in (VEHICLE_RISK, CREDIT_SCORE)}


def get_domain(name: str) -> DomainProfile:
    try:
        return DOMAINS[name]
    except KeyError:
        raise KeyError(f"Unknown domain {name!r}; choose from {', '.join(sorted(DOMAINS))}") from None


def domain_names() -> List[str]:
    return sorted(DOMAINS)
