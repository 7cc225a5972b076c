"""Tests for policy specification parsing."""

import pytest
from pydantic import ValidationError

from bind_verifier.policy.models import (
    BandDerivation,
    OpaqueDerivation,
    PassFailDerivation,
    PolicySpec,
)


class TestDerivationVariant:
    """Output derivations parse into kind-specific models."""

    def test_band_derivation(self, risk_policy):
        derive = risk_policy.find_output("riskBand").derive
        assert isinstance(derive, BandDerivation)
        assert derive.labels == ["HIGH", "MEDIUM", "LOW"]

    def test_pass_fail_derivation(self, credit_policy):
        derive = credit_policy.find_output("approved").derive
        assert isinstance(derive, PassFailDerivation)
        assert not hasattr(derive, "bands")

    def test_unknown_kind_is_opaque(self, risk_policy_doc):
        risk_policy_doc["outputs"][0]["derive"] = {"kind": "RANGE", "min": 0, "max": 10}
        policy = PolicySpec.model_validate(risk_policy_doc)
        derive = policy.outputs[0].derive
        assert isinstance(derive, OpaqueDerivation)
        assert derive.kind == "RANGE"

    def test_band_without_table_parses_empty(self, risk_policy_doc):
        """An empty band table is a validation concern, not a parse error."""
        risk_policy_doc["outputs"][0]["derive"] = {"kind": "BAND"}
        policy = PolicySpec.model_validate(risk_policy_doc)
        assert policy.outputs[0].derive.bands == []

    def test_missing_kind_rejected(self, risk_policy_doc):
        risk_policy_doc["outputs"][0]["derive"] = {}
        with pytest.raises(ValidationError):
            PolicySpec.model_validate(risk_policy_doc)


class TestPolicySpec:
    """Convenience accessors on PolicySpec."""

    def test_accessors(self, risk_policy):
        assert risk_policy.title == "Basic Vehicle Risk Band"
        assert risk_policy.subject_type == "vehicle"
        assert risk_policy.ttl == "P90D"
        assert risk_policy.discloses("riskBand")
        assert risk_policy.integrity.policy_hash == "0xabc123"

    def test_minimal_policy(self):
        """Only id and version are required; everything else is optional."""
        policy = PolicySpec.model_validate({"id": "p", "version": "0.1.0"})
        assert policy.title == "p"
        assert policy.subject_type is None
        assert policy.ttl is None
        assert policy.outputs == []
        assert not policy.discloses("riskBand")
        assert policy.find_output("riskBand") is None

    def test_find_outputs_returns_duplicates(self, risk_policy_doc):
        risk_policy_doc["outputs"].append(dict(risk_policy_doc["outputs"][0]))
        policy = PolicySpec.model_validate(risk_policy_doc)
        assert len(policy.find_outputs("riskBand")) == 2

    def test_unknown_fields_ignored(self, risk_policy_doc):
        risk_policy_doc["proving"] = {"circuitId": "bind.mobility.basicriskband.v0_1_0"}
        policy = PolicySpec.model_validate(risk_policy_doc)
        assert policy.id == "bind.mobility.basicriskband"

    def test_dump_uses_api_field_names(self, risk_policy):
        data = risk_policy.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert data["disclosure"] == {"exposeClaims": ["riskBand"]}
        assert data["integrity"] == {"policyHash": "0xabc123"}
        assert data["outputs"][0]["derive"]["kind"] == "BAND"
