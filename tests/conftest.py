"""Shared fixtures: policy documents, API payloads, a fixed clock and a mocked client."""

import copy
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from bind_verifier.api_models import Circuit, Credential, ProveJob, SharedProof, VerifyResult
from bind_verifier.policy.models import PolicySpec

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

RISK_POLICY_DOC = {
    "id": "bind.mobility.basicriskband",
    "version": "0.1.0",
    "metadata": {
        "title": "Basic Vehicle Risk Band",
        "namespace": "bind.mobility",
        "description": "Classifies vehicle risk from 90 days of telemetry",
    },
    "subject": {"type": "vehicle"},
    "outputs": [
        {
            "name": "riskBand",
            "type": "enum",
            "derive": {
                "kind": "BAND",
                "bands": [{"label": "HIGH"}, {"label": "MEDIUM"}, {"label": "LOW"}],
            },
        },
    ],
    "disclosure": {"exposeClaims": ["riskBand"]},
    "validity": {"ttl": "P90D"},
    "integrity": {"policyHash": "0xabc123"},
}

CREDIT_POLICY_DOC = {
    "id": "bind.demo.credit-score",
    "version": "0.1.0",
    "metadata": {"title": "Credit Score Check", "namespace": "bind.demo"},
    "subject": {"type": "person"},
    "outputs": [
        {"name": "approved", "type": "boolean", "derive": {"kind": "PASS_FAIL"}},
    ],
    "disclosure": {"exposeClaims": ["approved"]},
    "validity": {"ttl": "30d"},
}


def iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


def job_payload(status="completed", completed_days_ago=10, circuit_id="bind.mobility.basicriskband.v0_1_0"):
    completed = NOW - timedelta(days=completed_days_ago)
    return {
        "jobId": "job_123",
        "circuitId": circuit_id,
        "status": status,
        "verificationMode": "zkverify",
        "completedAt": iso(completed) if status == "completed" else None,
        "createdAt": iso(completed - timedelta(minutes=5)),
    }


def shared_payload(policy_doc=None, **overrides):
    data = {
        "id": "sp_1",
        "proveJobId": "job_123",
        "sharingOrgId": "org_vehicle_owner",
        "createdAt": iso(NOW - timedelta(days=2)),
        "note": "Risk band for renewal",
        "revokedAt": None,
        "expiresAt": iso(NOW + timedelta(days=30)),
        "policySpec": policy_doc,
        "proveJob": {
            "circuitName": "Basic Risk Band",
            "policyId": "bind.mobility.basicriskband",
            "completedAt": iso(NOW - timedelta(days=3)),
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def risk_policy_doc():
    return copy.deepcopy(RISK_POLICY_DOC)


@pytest.fixture
def credit_policy_doc():
    return copy.deepcopy(CREDIT_POLICY_DOC)


@pytest.fixture
def risk_policy(risk_policy_doc):
    return PolicySpec.model_validate(risk_policy_doc)


@pytest.fixture
def credit_policy(credit_policy_doc):
    return PolicySpec.model_validate(credit_policy_doc)


@pytest.fixture
def clock():
    """Fixed clock at NOW."""
    return lambda: NOW


@pytest.fixture
def mock_client(risk_policy):
    """Client whose every call succeeds for a fresh LOW-risk direct proof."""
    client = Mock()
    client.get_prove_job.return_value = ProveJob.model_validate(job_payload())
    client.get_circuit.return_value = Circuit.model_validate({
        "circuitId": "bind.mobility.basicriskband.v0_1_0",
        "name": "Basic Risk Band",
        "policyId": "bind.mobility.basicriskband",
    })
    client.get_policy.return_value = risk_policy
    client.list_policies.return_value = [risk_policy]
    client.get_shared_proof.return_value = SharedProof.model_validate(shared_payload())
    client.issue_proof_credential.return_value = Credential.model_validate({
        "credentialId": "cred_1",
        "format": "compact",
        "issuedAt": iso(NOW),
        "jwt": "eyJhbGciOiJFUzI1NiJ9.e30.sig",
    })
    client.verify_credential.return_value = VerifyResult.model_validate({
        "valid": True,
        "issuer": "did:web:bindprotocol.xyz",
        "subject": "vehicle:1HGCM82633A004352",
        "claims": {"riskBand": 2},
    })
    return client


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_job():
    """Factory for prove job payloads (camelCase API shape)."""
    return job_payload


@pytest.fixture
def make_shared():
    """Factory for shared proof payloads (camelCase API shape)."""
    return shared_payload
