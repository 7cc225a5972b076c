"""
Bind verifier exceptions.

Every fatal condition of a verification run is a BindVerifyError carrying
a code from ErrorCode and a human-readable message. The CLI converts them
to a printed message and exit status 1.
"""

from typing import Optional

from bind_verifier.api_models import ErrorCode


class BindVerifyError(Exception):
    """Base exception for verifier errors.

    Carries an error code that maps to ErrorCode constants.
    """

    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ConfigurationError(BindVerifyError):
    """Required credential or selector missing. Raised before any network access."""

    code = ErrorCode.CONFIG_MISSING

    @classmethod
    def missing_env(cls, var: str, purpose: str) -> "ConfigurationError":
        return cls(f"{var} environment variable is required for {purpose}")


class ProofFetchFailed(BindVerifyError):
    code = ErrorCode.PROOF_FETCH_FAILED


class JobNotReady(BindVerifyError):
    """Prove job is not in the completed state."""

    code = ErrorCode.JOB_NOT_READY

    def __init__(self, status: str):
        self.status = status
        super().__init__(
            f'Job status is "{status}" - only completed jobs can be verified'
        )


class SharedProofRejected(BindVerifyError):
    """Shared proof cannot be used: revoked, expired or without a policy."""

    @classmethod
    def revoked(cls) -> "SharedProofRejected":
        return cls("This shared proof has been revoked", code=ErrorCode.SHARED_PROOF_REVOKED)

    @classmethod
    def expired(cls) -> "SharedProofRejected":
        return cls("This shared proof has expired", code=ErrorCode.SHARED_PROOF_EXPIRED)

    @classmethod
    def no_policy(cls) -> "SharedProofRejected":
        return cls(
            "This proof is not associated with a policy",
            code=ErrorCode.PROOF_POLICY_MISSING,
        )


class PolicyRejected(BindVerifyError):
    """Fetched policy is not acceptable for the decision being made.

    Terminal: a rejected policy cannot become acceptable within one run.
    """

    code = ErrorCode.POLICY_REJECTED

    @classmethod
    def unsupported_version(cls, version: str) -> "PolicyRejected":
        return cls(f"Unsupported policy version: {version}")

    @classmethod
    def unexpected_subject(cls, subject_type: Optional[str], expected: str) -> "PolicyRejected":
        return cls(f"Unexpected subject type: {subject_type} (expected {expected})")

    @classmethod
    def missing_output(cls, name: str) -> "PolicyRejected":
        return cls(f"Policy missing required '{name}' output")

    @classmethod
    def duplicate_output(cls, name: str, count: int) -> "PolicyRejected":
        return cls(f"Policy declares '{name}' output {count} times")

    @classmethod
    def empty_bands(cls, name: str) -> "PolicyRejected":
        return cls(f"Output '{name}' uses BAND derivation without any bands")


class PolicyUnavailable(BindVerifyError):
    """Policy could not be located. Recovered locally by skipping validation."""

    code = ErrorCode.POLICY_UNAVAILABLE


class ProofExpired(BindVerifyError):
    """Proof age exceeds the policy validity window."""

    code = ErrorCode.PROOF_EXPIRED

    def __init__(self, age_days: int, ttl_days: int, hint: Optional[str] = None):
        self.age_days = age_days
        self.ttl_days = ttl_days
        self.hint = hint or "Request a fresh proof."
        super().__init__(
            f"Proof expired: age {age_days} days exceeds TTL of {ttl_days} days"
        )


class CredentialIssuanceFailure(BindVerifyError):
    code = ErrorCode.CREDENTIAL_ISSUANCE_FAILED

    def __init__(self, detail: str):
        super().__init__(f"Failed to issue credential: {detail}")


class CredentialVerificationFailure(BindVerifyError):
    code = ErrorCode.CREDENTIAL_VERIFY_FAILED

    def __init__(self, detail: str):
        super().__init__(f"Credential verification error: {detail}")


class CredentialInvalid(BindVerifyError):
    """Credential was verified and rejected by the issuer."""

    code = ErrorCode.CREDENTIAL_INVALID

    def __init__(self, detail: Optional[str]):
        super().__init__(f"Credential is invalid: {detail}")


# =============================================================================
# API client errors
# =============================================================================

class BindApiError(BindVerifyError):
    """Non-success response or transport failure talking to the Bind API."""

    code = ErrorCode.API_ERROR

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class AuthenticationError(BindApiError):
    code = ErrorCode.API_AUTH_FAILED


class ProveJobTimeout(BindApiError):
    """Prove job did not reach a terminal status before the deadline."""

    code = ErrorCode.PROVE_JOB_TIMEOUT
