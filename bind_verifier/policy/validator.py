"""Policy acceptability validation.

Checks a fetched policy specification against what the calling decision
needs, in a fixed order:

1. Version: leading component must be an accepted major (0.x only today)
2. Subject type matches the expected domain subject
3. Target output exists (exactly once)
4. Derivation: BAND outputs need a non-empty band table
5. Disclosure: target output listed in exposeClaims (warning only)

Checks 1-4 reject the policy outright. Check 5 is recorded as a finding;
an undisclosed output may still arrive through the generic claim name.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from bind_verifier.core.config import ACCEPTED_POLICY_MAJORS
from bind_verifier.exceptions import PolicyRejected
from bind_verifier.policy.models import (
    BandDerivation,
    DerivationKind,
    PolicyOutput,
    PolicySpec,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyRequirements:
    """What a decision domain requires of a policy.

    Attributes:
        target_output: Output name the decision depends on.
        target_kind: Derivation kind the decision expects for that output.
        subject_type: Required subject type, or None to only record it.
        accepted_majors: Accepted leading version components.
    """
    target_output: str
    target_kind: DerivationKind
    subject_type: Optional[str] = None
    accepted_majors: frozenset = ACCEPTED_POLICY_MAJORS


@dataclass
class ValidationReport:
    """Ordered findings from a successful validation."""
    policy_id: str
    title: str
    findings: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    band_labels: Optional[List[str]] = None
    disclosed: bool = False

    def note(self, finding: str) -> None:
        self.findings.append(finding)

    def warn(self, warning: str) -> None:
        log.warning(f"Policy {self.policy_id}: {warning}")
        self.findings.append(f"WARNING: {warning}")
        self.warnings.append(warning)


def version_is_accepted(version: str, accepted_majors: frozenset) -> bool:
    """Major-prefix match: "0.1.0" is accepted for major "0", "0" alone is not."""
    major, sep, _ = version.partition(".")
    return bool(sep) and major in accepted_majors


class PolicyValidator:
    """Validates policies against a fixed set of requirements."""

    def __init__(self, requirements: PolicyRequirements):
        self.requirements = requirements

    def validate(self, policy: PolicySpec) -> ValidationReport:
        """Validate policy acceptability.

        Returns:
            ValidationReport with findings in check order.

        Raises:
            PolicyRejected: On the first fatal check failure.
        """
        req = self.requirements
        report = ValidationReport(policy_id=policy.id, title=policy.title)

        if not version_is_accepted(policy.version, req.accepted_majors):
            raise PolicyRejected.unsupported_version(policy.version)
        report.note(f"Version: {policy.version}")

        subject_type = policy.subject_type
        if req.subject_type is not None and subject_type != req.subject_type:
            raise PolicyRejected.unexpected_subject(subject_type, req.subject_type)
        report.note(f"Subject type: {subject_type}")

        output = self._require_output(policy)
        report.note(f'Has "{output.name}" output ({output.type})')

        self._check_derivation(output, report)

        report.disclosed = policy.discloses(req.target_output)
        if report.disclosed:
            report.note(f'Output "{req.target_output}" is disclosed')
        else:
            report.warn(f'Output "{req.target_output}" is not listed in disclosure.exposeClaims')

        log.debug(f"Policy {policy.id} accepted with {len(report.findings)} findings")
        return report

    def _require_output(self, policy: PolicySpec) -> PolicyOutput:
        name = self.requirements.target_output
        matches = policy.find_outputs(name)
        if not matches:
            raise PolicyRejected.missing_output(name)
        if len(matches) > 1:
            raise PolicyRejected.duplicate_output(name, len(matches))
        return matches[0]

    def _check_derivation(self, output: PolicyOutput, report: ValidationReport) -> None:
        derive = output.derive
        expected = self.requirements.target_kind.value

        if derive.kind != expected:
            report.warn(f"Output '{output.name}' uses {derive.kind} derivation (expected {expected})")
        else:
            report.note(f"Uses {derive.kind} derivation")

        if isinstance(derive, BandDerivation):
            if not derive.bands:
                raise PolicyRejected.empty_bands(output.name)
            report.band_labels = derive.labels
            report.note(f"Bands: {', '.join(derive.labels)}")
