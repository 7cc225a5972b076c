"""Tests for proof freshness checking."""

from datetime import datetime, timedelta, timezone

import pytest

from bind_verifier.exceptions import ProofExpired
from bind_verifier.freshness import FreshnessChecker, parse_ttl_days, proof_age_days
from bind_verifier.policy.models import PolicySpec

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def policy_with_ttl(ttl):
    doc = {"id": "p", "version": "0.1.0"}
    if ttl is not None:
        doc["validity"] = {"ttl": ttl}
    return PolicySpec.model_validate(doc)


class TestParseTtl:
    """TTL strings in ISO day-duration or bare day-count form."""

    @pytest.mark.parametrize("ttl,days", [
        ("P90D", 90),
        ("p90d", 90),
        ("P1D", 1),
        ("P0D", 0),
        ("30d", 30),
        ("30D", 30),
        ("365d", 365),
    ])
    def test_recognised(self, ttl, days):
        assert parse_ttl_days(ttl) == days

    @pytest.mark.parametrize("ttl", [
        None, "", "90", "P3M", "PT24H", "P1W", "P90DX", "x90d", "90 days", "P-1D",
    ])
    def test_unrecognised(self, ttl):
        assert parse_ttl_days(ttl) is None


class TestProofAge:
    """Age is whole days, truncated."""

    def test_truncates_partial_days(self):
        assert proof_age_days(NOW - timedelta(days=3, hours=23), NOW) == 3

    def test_naive_timestamp_treated_as_utc(self):
        naive = (NOW - timedelta(days=2)).replace(tzinfo=None)
        assert proof_age_days(naive, NOW) == 2


class TestFreshnessChecker:
    """Boundary and fallback behaviour."""

    def checker(self, default=90):
        return FreshnessChecker(default, clock=lambda: NOW, expired_hint="Get a new one.")

    def test_boundary_is_fresh(self):
        result = self.checker().check(NOW - timedelta(days=30), NOW, policy_with_ttl("30d"))
        assert result.age_days == 30
        assert result.ttl_days == 30
        assert not result.ttl_is_default

    def test_one_day_past_boundary_expires(self):
        with pytest.raises(ProofExpired) as exc:
            self.checker().check(NOW - timedelta(days=31), NOW, policy_with_ttl("30d"))
        assert exc.value.age_days == 31
        assert exc.value.ttl_days == 30
        assert exc.value.hint == "Get a new one."

    def test_unrecognised_ttl_uses_default(self):
        result = self.checker(default=90).check(NOW - timedelta(days=60), NOW, policy_with_ttl("P3M"))
        assert result.ttl_days == 90
        assert result.ttl_is_default

    def test_no_policy_uses_default(self):
        with pytest.raises(ProofExpired) as exc:
            self.checker(default=30).check(NOW - timedelta(days=45), NOW, None)
        assert exc.value.ttl_days == 30

    def test_policy_without_validity_uses_default(self):
        result = self.checker(default=90).check(NOW - timedelta(days=1), NOW, policy_with_ttl(None))
        assert result.ttl_source == "default"

    def test_missing_completion_uses_fallback(self):
        created = NOW - timedelta(days=5)
        result = self.checker().check(None, created, policy_with_ttl("P90D"))
        assert result.proved_at == created
        assert result.age_days == 5

    def test_default_hint(self):
        checker = FreshnessChecker(1, clock=lambda: NOW)
        with pytest.raises(ProofExpired) as exc:
            checker.check(NOW - timedelta(days=2), NOW, None)
        assert exc.value.hint == "Request a fresh proof."
        assert exc.value.message == "Proof expired: age 2 days exceeds TTL of 1 days"
