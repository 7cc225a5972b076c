"""Proof credential verification orchestration.

Runs the policy-gated verification workflow for one proof, in one of two
modes sharing the same downstream sequence:

- direct: the caller owns the prove job
- shared: the proof was shared by another organization

Stages, in order (VALIDATE_POLICY only runs when a policy was resolved):

    FETCH_PROOF -> RESOLVE_POLICY -> [VALIDATE_POLICY] -> CHECK_FRESHNESS
        -> ISSUE_CREDENTIAL -> VERIFY_CREDENTIAL -> INTERPRET

Each executed stage is appended to a VerificationTrace; user-facing step
numbers come from enumerating the trace, so they are always consecutive.
Any fatal condition raises a BindVerifyError and halts the remaining
stages. Nothing is retried.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from bind_verifier.api_models import Circuit, Credential, ErrorCode, VerifyResult
from bind_verifier.claims import ClaimResolution
from bind_verifier.core.config import CREDENTIAL_FORMAT
from bind_verifier.domains import Decision, DomainProfile
from bind_verifier.exceptions import (
    BindApiError,
    BindVerifyError,
    CredentialInvalid,
    CredentialIssuanceFailure,
    CredentialVerificationFailure,
    JobNotReady,
    ProofExpired,
    ProofFetchFailed,
    SharedProofRejected,
)
from bind_verifier.freshness import FreshnessResult, as_utc, utc_now
from bind_verifier.policy.models import PolicySpec
from bind_verifier.policy.resolver import (
    PolicyResolution,
    PolicyResolved,
    direct_lookup,
    embedded,
    listing_scan,
    resolve_policy,
)
from bind_verifier.policy.validator import ValidationReport

log = logging.getLogger(__name__)


# =============================================================================
# Stage trace
# =============================================================================


class Stage(str, Enum):
    FETCH_PROOF = "fetch_proof"
    RESOLVE_POLICY = "resolve_policy"
    VALIDATE_POLICY = "validate_policy"
    CHECK_FRESHNESS = "check_freshness"
    ISSUE_CREDENTIAL = "issue_credential"
    VERIFY_CREDENTIAL = "verify_credential"
    INTERPRET = "interpret"


STAGE_TITLES = {
    Stage.FETCH_PROOF: "Fetching proof",
    Stage.RESOLVE_POLICY: "Resolving policy",
    Stage.VALIDATE_POLICY: "Validating policy acceptability",
    Stage.CHECK_FRESHNESS: "Checking proof freshness",
    Stage.ISSUE_CREDENTIAL: "Issuing proof credential",
    Stage.VERIFY_CREDENTIAL: "Verifying credential",
    Stage.INTERPRET: "Processing verification result",
}


class VerificationMode(str, Enum):
    DIRECT = "direct"
    SHARED = "shared"


@dataclass
class StageRecord:
    """One executed stage and the findings it produced."""
    stage: Stage
    title: str
    findings: List[str] = field(default_factory=list)

    def add(self, finding: str) -> None:
        self.findings.append(finding)


@dataclass
class VerificationTrace:
    """Ordered record of the stages a run actually executed."""
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    records: List[StageRecord] = field(default_factory=list)

    def begin(self, stage: Stage, title: Optional[str] = None) -> StageRecord:
        record = StageRecord(stage=stage, title=title or STAGE_TITLES[stage])
        self.records.append(record)
        return record

    @property
    def current(self) -> Optional[StageRecord]:
        return self.records[-1] if self.records else None

    @property
    def stages(self) -> List[Stage]:
        return [r.stage for r in self.records]

    def numbered(self) -> List[Tuple[int, StageRecord]]:
        """(step number, record) pairs, numbered from 1 in execution order."""
        return list(enumerate(self.records, start=1))

    def step_of(self, stage: Stage) -> Optional[int]:
        for number, record in self.numbered():
            if record.stage == stage:
                return number
        return None


# =============================================================================
# Report
# =============================================================================


@dataclass(frozen=True)
class ProofSummary:
    """What was proven, for the closing summary."""
    job_id: str
    policy_title: str
    circuit_name: str
    prover: str


@dataclass
class VerificationReport:
    mode: VerificationMode
    domain: DomainProfile
    summary: ProofSummary
    trace: VerificationTrace
    policy: Optional[PolicySpec]
    validation: Optional[ValidationReport]
    freshness: FreshnessResult
    credential: Credential
    verify_result: VerifyResult
    resolution: ClaimResolution
    decision: Decision

    @property
    def policy_validated(self) -> bool:
        return self.validation is not None


DIRECT_PROVER = "(same org - direct verification)"


# =============================================================================
# Orchestrator
# =============================================================================


class VerificationOrchestrator:
    """Verifies proof credentials for one decision domain.

    Args:
        client: Bind API client (see bind_verifier.client.BindClient).
        domain: Decision domain profile.
        clock: Returns the current time; shared by freshness and share expiry.
            Defaults to UTC now.
        credential_format: Format requested from credential issuance.
    """

    def __init__(
        self,
        client,
        domain: DomainProfile,
        clock: Optional[Callable[[], datetime]] = None,
        credential_format: str = CREDENTIAL_FORMAT,
    ):
        self.client = client
        self.domain = domain
        self.clock = clock or utc_now
        self.credential_format = credential_format
        self.validator = domain.validator()
        self.freshness = domain.freshness_checker(self.clock)
        self.interpreter = domain.interpreter()

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def verify_direct(self, job_id: str, trace: Optional[VerificationTrace] = None) -> VerificationReport:
        """Verify a prove job owned by the caller's organization.

        Raises:
            BindVerifyError: On any fatal condition.
        """
        trace = trace if trace is not None else VerificationTrace()
        with self._run(trace, VerificationMode.DIRECT):
            return self._direct(job_id, trace)

    def verify_shared(self, shared_proof_id: str, trace: Optional[VerificationTrace] = None) -> VerificationReport:
        """Verify a proof shared with the caller by another organization.

        Raises:
            BindVerifyError: On any fatal condition.
        """
        trace = trace if trace is not None else VerificationTrace()
        with self._run(trace, VerificationMode.SHARED):
            return self._shared(shared_proof_id, trace)

    # -------------------------------------------------------------------------
    # Variants
    # -------------------------------------------------------------------------

    def _direct(self, job_id: str, trace: VerificationTrace) -> VerificationReport:
        step = trace.begin(Stage.FETCH_PROOF, "Fetching prove job")
        job = self._fetch("prove job", job_id, self.client.get_prove_job)
        step.add(f"Job ID: {job.job_id}")
        step.add(f"Circuit: {job.circuit_id}")
        step.add(f"Status: {job.status}")
        step.add(f"Verification Mode: {job.verification_mode}")
        if not job.is_completed:
            raise JobNotReady(job.status)

        step = trace.begin(Stage.RESOLVE_POLICY, "Looking up circuit and policy")
        circuit = self._lookup_circuit(job.circuit_id, step)
        policy_id = circuit.policy_id if circuit else None
        resolution = None
        if policy_id:
            step.add(f"Policy ID: {policy_id}")
            resolution = resolve_policy(policy_id, [direct_lookup(self.client), listing_scan(self.client)])
        elif circuit is not None:
            step.add("No policy associated with this circuit.")
        policy = self._record_resolution(resolution, step)

        summary = ProofSummary(
            job_id=job.job_id,
            policy_title=policy.title if policy else (policy_id or job.circuit_id),
            circuit_name=circuit.name if circuit else job.circuit_id,
            prover=DIRECT_PROVER,
        )
        return self._finish(
            VerificationMode.DIRECT, trace, summary, policy,
            completed_at=job.completed_at, fallback=job.created_at,
        )

    def _shared(self, shared_proof_id: str, trace: VerificationTrace) -> VerificationReport:
        step = trace.begin(Stage.FETCH_PROOF, "Fetching shared proof details")
        shared = self._fetch("shared proof", shared_proof_id, self.client.get_shared_proof)
        step.add(f"Proof Job: {shared.prove_job_id}")
        step.add(f"Circuit: {shared.prove_job.circuit_name}")
        step.add(f"From Org: {shared.sharing_org_id}")
        step.add(f"Shared At: {shared.created_at.isoformat()}")
        if shared.note:
            step.add(f"Note: {shared.note}")

        if shared.revoked_at is not None:
            raise SharedProofRejected.revoked()
        if shared.expires_at is not None and as_utc(shared.expires_at) < as_utc(self.clock()):
            raise SharedProofRejected.expired()
        policy_id = shared.prove_job.policy_id
        if not policy_id:
            raise SharedProofRejected.no_policy()
        step.add(f"Policy ID: {policy_id}")

        step = trace.begin(Stage.RESOLVE_POLICY, "Getting policy specification")
        if shared.policy_spec is None:
            step.add("Policy not included in shared proof, fetching separately...")
        resolution = resolve_policy(
            policy_id,
            [embedded(shared.policy_spec), direct_lookup(self.client), listing_scan(self.client)],
        )
        policy = self._record_resolution(resolution, step)

        summary = ProofSummary(
            job_id=shared.prove_job_id,
            policy_title=policy.title if policy else policy_id,
            circuit_name=shared.prove_job.circuit_name,
            prover=shared.sharing_org_id,
        )
        return self._finish(
            VerificationMode.SHARED, trace, summary, policy,
            completed_at=shared.prove_job.completed_at, fallback=shared.created_at,
        )

    # -------------------------------------------------------------------------
    # Shared downstream sequence
    # -------------------------------------------------------------------------

    def _finish(
        self,
        mode: VerificationMode,
        trace: VerificationTrace,
        summary: ProofSummary,
        policy: Optional[PolicySpec],
        completed_at: Optional[datetime],
        fallback: datetime,
    ) -> VerificationReport:
        validation = None
        if policy is not None:
            step = trace.begin(Stage.VALIDATE_POLICY)
            validation = self.validator.validate(policy)
            step.findings.extend(validation.findings)

        freshness = self._check_freshness(trace, completed_at, fallback, policy)
        credential = self._issue_credential(trace, summary.job_id)
        verify_result = self._verify_credential(trace, credential)

        step = trace.begin(Stage.INTERPRET)
        resolution = self.interpreter.resolve(verify_result.claims, policy)
        decision = self.domain.decide(resolution)
        step.add(f"{resolution.claim_name or self.domain.target_output}: {resolution.raw_value} ({resolution.label})")
        if decision.recommendation:
            step.add(f"Recommendation: {decision.recommendation}")

        return VerificationReport(
            mode=mode,
            domain=self.domain,
            summary=summary,
            trace=trace,
            policy=policy,
            validation=validation,
            freshness=freshness,
            credential=credential,
            verify_result=verify_result,
            resolution=resolution,
            decision=decision,
        )

    def _check_freshness(
        self,
        trace: VerificationTrace,
        completed_at: Optional[datetime],
        fallback: datetime,
        policy: Optional[PolicySpec],
    ) -> FreshnessResult:
        step = trace.begin(Stage.CHECK_FRESHNESS)
        try:
            result = self.freshness.check(completed_at, fallback, policy)
        except ProofExpired as e:
            step.add(f"Proof age: {e.age_days} days")
            step.add(f"Policy TTL: {e.ttl_days} days")
            step.add("Status: EXPIRED - proof is too old")
            raise
        default = " (default)" if result.ttl_is_default else ""
        step.add(f"Proof age: {result.age_days} days")
        step.add(f"Policy TTL: {result.ttl_days} days{default}")
        step.add("Status: Fresh")
        return result

    def _issue_credential(self, trace: VerificationTrace, job_id: str) -> Credential:
        step = trace.begin(Stage.ISSUE_CREDENTIAL)
        try:
            credential = self.client.issue_proof_credential(job_id, format=self.credential_format)
        except (BindApiError, ValidationError) as e:
            raise CredentialIssuanceFailure(getattr(e, "message", str(e))) from e
        step.add(f"Credential ID: {credential.credential_id}")
        step.add(f"Format: {credential.format}")
        if credential.issued_at is not None:
            step.add(f"Issued At: {credential.issued_at.isoformat()}")
        return credential

    def _verify_credential(self, trace: VerificationTrace, credential: Credential) -> VerifyResult:
        step = trace.begin(Stage.VERIFY_CREDENTIAL)
        try:
            result = self.client.verify_credential(credential.jwt)
        except (BindApiError, ValidationError) as e:
            raise CredentialVerificationFailure(getattr(e, "message", str(e))) from e
        if not result.valid:
            raise CredentialInvalid(result.error)
        step.add(f"Issuer: {result.issuer}")
        if result.subject:
            step.add(f"Subject: {result.subject}")
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _fetch(self, what: str, ident: str, fetch):
        try:
            return fetch(ident)
        except (BindApiError, ValidationError) as e:
            raise ProofFetchFailed(f"Failed to fetch {what} {ident}: {getattr(e, 'message', e)}") from e

    def _lookup_circuit(self, circuit_id: str, step: StageRecord) -> Optional[Circuit]:
        # Without the circuit the policy id is unknown; degrade to no policy
        try:
            circuit = self.client.get_circuit(circuit_id)
        except (BindApiError, ValidationError) as e:
            log.warning(f"Circuit lookup failed for {circuit_id}: {e}", extra={"code": ErrorCode.POLICY_UNAVAILABLE})
            step.add(f"Circuit lookup failed: {circuit_id}")
            step.add("Skipping policy validation.")
            return None
        step.add(f"Circuit: {circuit.name} ({circuit.circuit_id})")
        return circuit

    def _record_resolution(self, resolution: Optional[PolicyResolution], step: StageRecord) -> Optional[PolicySpec]:
        if resolution is None:
            return None
        for attempt in resolution.attempts:
            step.add(f"Attempt {attempt}")
        if isinstance(resolution, PolicyResolved):
            step.add(f"Found policy: {resolution.policy.title} (via {resolution.source})")
            return resolution.policy
        error = resolution.as_error()
        log.warning(error.message, extra={"code": error.code})
        step.add(error.message)
        step.add("Skipping policy validation.")
        return None

    @contextmanager
    def _run(self, trace: VerificationTrace, mode: VerificationMode):
        extra = {"run_id": trace.run_id, "mode": mode.value}
        log.info(f"Verification started ({self.domain.name})", extra=extra)
        try:
            yield
        except BindVerifyError as e:
            current = trace.current
            stage = current.stage.value if current else None
            log.error(f"Verification failed: {e.message}", extra={**extra, "stage": stage, "code": e.code})
            raise
        log.info("Verification complete", extra=extra)
