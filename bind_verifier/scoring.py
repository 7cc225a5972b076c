"""Reference scoring previews.

Mirrors, for display before a prove job is submitted, what the circuit is
expected to compute. The authoritative value is always the proof output;
nothing here feeds the verification workflow.

Additive scoring: start at a baseline, add the bonus of every satisfied
rule independently (rules are not mutually exclusive), clamp to the
maximum and map the score to a band through descending cut points.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Sequence, Tuple

Inputs = Mapping[str, float]


@dataclass(frozen=True)
class ScoreRule:
    """Threshold predicate worth ``bonus`` points when satisfied."""
    name: str
    description: str
    predicate: Callable[[Inputs], bool]
    bonus: int = 0


@dataclass(frozen=True)
class RequirementRule:
    """Predicate that must hold for the proof to succeed at all."""
    name: str
    description: str
    predicate: Callable[[Inputs], bool]


@dataclass(frozen=True)
class ScoringProfile:
    """
    Attributes:
        cut_points: (minimum score, band) pairs, highest first.
        floor_band: Band for scores below every cut point.
    """
    rules: Sequence[ScoreRule]
    cut_points: Sequence[Tuple[int, str]]
    floor_band: str
    baseline: int = 50
    maximum: int = 100
    requirements: Sequence[RequirementRule] = ()


@dataclass
class ScorePreview:
    score: int
    band: str
    breakdown: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class RulePreview:
    """Pass/fail preview: the expected outcome is positive iff every rule holds."""
    passed: bool
    checks: List[Tuple[str, bool]] = field(default_factory=list)


class ReferenceScorer:
    def __init__(self, profile: ScoringProfile):
        self.profile = profile

    def band_for(self, score: int) -> str:
        for minimum, band in self.profile.cut_points:
            if score >= minimum:
                return band
        return self.profile.floor_band

    def score(self, inputs: Inputs) -> ScorePreview:
        profile = self.profile
        total = profile.baseline
        breakdown = [f"Baseline: {profile.baseline}"]

        for rule in profile.rules:
            if rule.predicate(inputs):
                total += rule.bonus
                breakdown.append(f"{rule.description}: +{rule.bonus}")

        total = min(profile.maximum, total)
        warnings = [
            f"{req.description} not met - the proof will FAIL the {req.name} rule"
            for req in profile.requirements
            if not req.predicate(inputs)
        ]
        return ScorePreview(score=total, band=self.band_for(total), breakdown=breakdown, warnings=warnings)


def preview_rules(rules: Sequence[RequirementRule], inputs: Inputs) -> RulePreview:
    checks = [(rule.description, bool(rule.predicate(inputs))) for rule in rules]
    return RulePreview(passed=all(ok for _, ok in checks), checks=checks)


# =============================================================================
# Vehicle risk (bind.mobility.basicriskband)
# =============================================================================

VEHICLE_RISK_PROFILE = ScoringProfile(
    rules=(
        ScoreRule("low_mileage", "Low mileage (<=3,000)", lambda i: i["mileage_90d"] <= 3000, 25),
        ScoreRule("moderate_mileage", "Moderate mileage (<=5,000)", lambda i: i["mileage_90d"] <= 5000, 15),
        ScoreRule("no_extreme_speed", "No extreme speed (<100 mph)", lambda i: i["speed_max"] < 100, 10),
    ),
    cut_points=((71, "LOW"), (41, "MEDIUM")),
    floor_band="HIGH",
    requirements=(
        RequirementRule("sufficient_data", "Sufficient data (>=100 data points)", lambda i: i["data_points"] >= 100),
    ),
)

# =============================================================================
# Credit score (bind.demo.credit-score)
# =============================================================================

MAX_DEBT_TO_INCOME = 0.5
MIN_CREDIT_HISTORY_MONTHS = 12


def debt_to_income(inputs: Inputs) -> float:
    income = inputs["income"]
    if income <= 0:
        return float("inf")
    return inputs["debt"] / income


CREDIT_SCORE_RULES = (
    RequirementRule(
        "debt_to_income",
        f"Debt-to-income ratio <= {MAX_DEBT_TO_INCOME:.0%}",
        lambda i: debt_to_income(i) <= MAX_DEBT_TO_INCOME,
    ),
    RequirementRule(
        "credit_history",
        f"Credit history >= {MIN_CREDIT_HISTORY_MONTHS} months",
        lambda i: i["credit_history_months"] >= MIN_CREDIT_HISTORY_MONTHS,
    ),
)
