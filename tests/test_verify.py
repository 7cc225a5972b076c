"""Tests for the verification orchestrator.

The API client is a Mock; every stage's collaborator can be made to fail
independently.
"""

from datetime import timedelta

import pytest

from bind_verifier.api_models import ErrorCode, ProveJob, SharedProof, VerifyResult
from bind_verifier.domains import CREDIT_SCORE, VEHICLE_RISK
from bind_verifier.exceptions import (
    BindApiError,
    CredentialInvalid,
    CredentialIssuanceFailure,
    CredentialVerificationFailure,
    JobNotReady,
    PolicyRejected,
    ProofExpired,
    ProofFetchFailed,
    SharedProofRejected,
)
from bind_verifier.policy.models import PolicySpec
from bind_verifier.verify import (
    DIRECT_PROVER,
    Stage,
    VerificationMode,
    VerificationOrchestrator,
    VerificationTrace,
)

FULL_DIRECT = [
    Stage.FETCH_PROOF,
    Stage.RESOLVE_POLICY,
    Stage.VALIDATE_POLICY,
    Stage.CHECK_FRESHNESS,
    Stage.ISSUE_CREDENTIAL,
    Stage.VERIFY_CREDENTIAL,
    Stage.INTERPRET,
]


@pytest.fixture
def orchestrator(mock_client, clock):
    return VerificationOrchestrator(mock_client, VEHICLE_RISK, clock=clock)


def assert_consecutive(trace):
    assert [n for n, _ in trace.numbered()] == list(range(1, len(trace.records) + 1))


class TestDirectVerification:
    """Direct mode: the caller owns the prove job."""

    def test_end_to_end(self, orchestrator, mock_client):
        report = orchestrator.verify_direct("job_123")

        assert report.mode is VerificationMode.DIRECT
        assert report.trace.stages == FULL_DIRECT
        assert report.policy_validated
        assert report.resolution.label == "LOW"
        assert report.decision.outcome == "LOW"
        assert report.decision.recommendation == "APPROVE"
        assert report.freshness.age_days == 10
        assert report.freshness.ttl_days == 90
        assert report.summary.prover == DIRECT_PROVER
        assert report.summary.circuit_name == "Basic Risk Band"
        mock_client.issue_proof_credential.assert_called_once_with("job_123", format="compact")
        mock_client.verify_credential.assert_called_once_with("eyJhbGciOiJFUzI1NiJ9.e30.sig")
        assert_consecutive(report.trace)

    def test_job_not_completed(self, orchestrator, mock_client, make_job):
        mock_client.get_prove_job.return_value = ProveJob.model_validate(make_job(status="running"))
        trace = VerificationTrace()

        with pytest.raises(JobNotReady) as exc:
            orchestrator.verify_direct("job_123", trace)

        assert 'Job status is "running"' in exc.value.message
        assert trace.stages == [Stage.FETCH_PROOF]
        mock_client.get_circuit.assert_not_called()

    def test_fetch_failure(self, orchestrator, mock_client):
        mock_client.get_prove_job.side_effect = BindApiError("API error (404): Job not found", status=404)
        with pytest.raises(ProofFetchFailed) as exc:
            orchestrator.verify_direct("missing")
        assert exc.value.code == ErrorCode.PROOF_FETCH_FAILED
        assert "Job not found" in exc.value.message

    def test_policy_lookup_falls_back_to_listing(self, orchestrator, mock_client):
        mock_client.get_policy.side_effect = BindApiError("API error (502): bad gateway", status=502)

        report = orchestrator.verify_direct("job_123")

        assert report.policy_validated
        mock_client.list_policies.assert_called_once()

    def test_policy_unavailable_skips_validation(self, orchestrator, mock_client):
        mock_client.get_policy.return_value = None
        mock_client.list_policies.return_value = []

        report = orchestrator.verify_direct("job_123")

        assert not report.policy_validated
        assert Stage.VALIDATE_POLICY not in report.trace.stages
        assert report.freshness.ttl_is_default
        assert report.freshness.ttl_days == 90
        # Default band table still decodes the claim
        assert report.resolution.label == "LOW"
        assert report.resolution.source == "default"
        assert_consecutive(report.trace)
        findings = report.trace.records[1].findings
        assert "Policy not found: bind.mobility.basicriskband" in findings
        assert "Skipping policy validation." in findings

    def test_circuit_lookup_failure_skips_validation(self, orchestrator, mock_client):
        mock_client.get_circuit.side_effect = BindApiError("API error (500): oops", status=500)

        report = orchestrator.verify_direct("job_123")

        assert report.policy is None
        assert report.summary.circuit_name == "bind.mobility.basicriskband.v0_1_0"
        mock_client.get_policy.assert_not_called()

    def test_step_numbers_with_and_without_validation(self, orchestrator, mock_client):
        validated = orchestrator.verify_direct("job_123")
        assert validated.trace.step_of(Stage.CHECK_FRESHNESS) == 4

        mock_client.get_policy.return_value = None
        mock_client.list_policies.return_value = []
        skipped = orchestrator.verify_direct("job_123")
        assert skipped.trace.step_of(Stage.CHECK_FRESHNESS) == 3
        assert skipped.trace.step_of(Stage.VALIDATE_POLICY) is None


class TestPolicyGate:
    """A rejected policy halts the run before any credential is issued."""

    def test_rejected_policy(self, orchestrator, mock_client, risk_policy):
        mock_client.get_policy.return_value = risk_policy.model_copy(update={"version": "1.0.0"})
        trace = VerificationTrace()

        with pytest.raises(PolicyRejected):
            orchestrator.verify_direct("job_123", trace)

        assert trace.current.stage is Stage.VALIDATE_POLICY
        mock_client.issue_proof_credential.assert_not_called()

    def test_undisclosed_output_is_accepted(self, orchestrator, mock_client, risk_policy_doc):
        risk_policy_doc["disclosure"] = {"exposeClaims": []}
        mock_client.get_policy.return_value = PolicySpec.model_validate(risk_policy_doc)

        report = orchestrator.verify_direct("job_123")

        assert report.validation.warnings
        assert report.decision.outcome == "LOW"


class TestFreshness:
    def test_expired_proof(self, orchestrator, mock_client, make_job):
        mock_client.get_prove_job.return_value = ProveJob.model_validate(make_job(completed_days_ago=91))
        trace = VerificationTrace()

        with pytest.raises(ProofExpired) as exc:
            orchestrator.verify_direct("job_123", trace)

        assert exc.value.age_days == 91
        assert exc.value.ttl_days == 90
        assert "insurance underwriting" in exc.value.hint
        assert trace.current.stage is Stage.CHECK_FRESHNESS
        assert "Status: EXPIRED - proof is too old" in trace.current.findings
        mock_client.issue_proof_credential.assert_not_called()

    def test_ttl_boundary_is_fresh(self, orchestrator, mock_client, make_job):
        mock_client.get_prove_job.return_value = ProveJob.model_validate(make_job(completed_days_ago=90))
        assert orchestrator.verify_direct("job_123").freshness.age_days == 90


class TestCredentialStages:
    def test_issuance_failure(self, orchestrator, mock_client):
        mock_client.issue_proof_credential.side_effect = BindApiError("API error (409): Proof not on chain", status=409)
        with pytest.raises(CredentialIssuanceFailure) as exc:
            orchestrator.verify_direct("job_123")
        assert exc.value.message == "Failed to issue credential: API error (409): Proof not on chain"

    def test_verification_error(self, orchestrator, mock_client):
        mock_client.verify_credential.side_effect = BindApiError("Request timed out: POST /api/credentials/verify")
        with pytest.raises(CredentialVerificationFailure):
            orchestrator.verify_direct("job_123")

    def test_invalid_credential(self, orchestrator, mock_client):
        mock_client.verify_credential.return_value = VerifyResult(valid=False, error="signature mismatch")
        trace = VerificationTrace()
        with pytest.raises(CredentialInvalid) as exc:
            orchestrator.verify_direct("job_123", trace)
        assert exc.value.message == "Credential is invalid: signature mismatch"
        assert Stage.INTERPRET not in trace.stages


class TestSharedVerification:
    """Shared mode: another organization shared the proof."""

    def test_end_to_end_with_embedded_policy(self, orchestrator, mock_client, make_shared, risk_policy_doc):
        mock_client.get_shared_proof.return_value = SharedProof.model_validate(make_shared(policy_doc=risk_policy_doc))

        report = orchestrator.verify_shared("sp_1")

        assert report.mode is VerificationMode.SHARED
        assert report.trace.stages == FULL_DIRECT
        assert report.summary.prover == "org_vehicle_owner"
        assert report.summary.job_id == "job_123"
        assert report.freshness.age_days == 3
        mock_client.get_policy.assert_not_called()
        mock_client.issue_proof_credential.assert_called_once_with("job_123", format="compact")

    def test_policy_fetched_when_not_embedded(self, orchestrator, mock_client):
        report = orchestrator.verify_shared("sp_1")

        assert report.policy_validated
        mock_client.get_policy.assert_called_once_with("bind.mobility.basicriskband")
        assert "Policy not included in shared proof, fetching separately..." in report.trace.records[1].findings

    def test_malformed_embedded_policy_falls_back_to_lookup(
        self, orchestrator, mock_client, make_shared, risk_policy_doc
    ):
        del risk_policy_doc["outputs"][0]["type"]
        mock_client.get_shared_proof.return_value = SharedProof.model_validate(make_shared(policy_doc=risk_policy_doc))

        report = orchestrator.verify_shared("sp_1")

        assert report.policy_validated
        mock_client.get_policy.assert_called_once_with("bind.mobility.basicriskband")
        findings = report.trace.records[1].findings
        assert any(f.startswith("Attempt embedded: failed") for f in findings)

    def test_revoked_fails_before_policy(self, orchestrator, mock_client, make_shared, now):
        revoked = make_shared(revokedAt=(now - timedelta(days=1)).isoformat())
        mock_client.get_shared_proof.return_value = SharedProof.model_validate(revoked)
        trace = VerificationTrace()

        with pytest.raises(SharedProofRejected) as exc:
            orchestrator.verify_shared("sp_1", trace)

        assert exc.value.code == ErrorCode.SHARED_PROOF_REVOKED
        assert trace.stages == [Stage.FETCH_PROOF]
        mock_client.get_policy.assert_not_called()
        mock_client.list_policies.assert_not_called()
        mock_client.issue_proof_credential.assert_not_called()

    def test_expired_share(self, orchestrator, mock_client, make_shared, now):
        expired = make_shared(expiresAt=(now - timedelta(hours=1)).isoformat())
        mock_client.get_shared_proof.return_value = SharedProof.model_validate(expired)

        with pytest.raises(SharedProofRejected) as exc:
            orchestrator.verify_shared("sp_1")
        assert exc.value.code == ErrorCode.SHARED_PROOF_EXPIRED

    def test_share_without_policy(self, orchestrator, mock_client, make_shared):
        data = make_shared()
        data["proveJob"]["policyId"] = None
        mock_client.get_shared_proof.return_value = SharedProof.model_validate(data)

        with pytest.raises(SharedProofRejected) as exc:
            orchestrator.verify_shared("sp_1")
        assert exc.value.code == ErrorCode.PROOF_POLICY_MISSING

    def test_unresolved_policy_still_verifies(self, orchestrator, mock_client):
        mock_client.get_policy.return_value = None
        mock_client.list_policies.return_value = []

        report = orchestrator.verify_shared("sp_1")

        assert not report.policy_validated
        assert report.summary.policy_title == "bind.mobility.basicriskband"
        assert_consecutive(report.trace)


class TestCreditDomain:
    """Pass/fail decisions through the same workflow."""

    def test_approved(self, mock_client, clock, credit_policy, make_job):
        mock_client.get_prove_job.return_value = ProveJob.model_validate(
            make_job(circuit_id="bind.demo.credit_score.v0_1_0", completed_days_ago=5)
        )
        mock_client.get_policy.return_value = credit_policy
        mock_client.verify_credential.return_value = VerifyResult(valid=True, issuer="did:web:x", claims={"approved": True})

        report = VerificationOrchestrator(mock_client, CREDIT_SCORE, clock=clock).verify_direct("job_123")

        assert report.decision.outcome == "APPROVED"
        assert report.freshness.ttl_days == 30

    def test_not_approved(self, mock_client, clock, credit_policy):
        mock_client.get_policy.return_value = credit_policy
        mock_client.verify_credential.return_value = VerifyResult(valid=True, claims={"outputValue": 0})

        report = VerificationOrchestrator(mock_client, CREDIT_SCORE, clock=clock).verify_direct("job_123")

        assert report.decision.outcome == "NOT APPROVED"
        assert report.resolution.claim_name == "outputValue"
