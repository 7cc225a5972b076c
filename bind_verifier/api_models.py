"""
Bind API wire models and the verifier error code registry.

Field names follow the API's camelCase JSON; models accept either the
alias or the Python attribute name.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Prove jobs and circuits
# =============================================================================

class ProveJobStatus(str, Enum):
    """Prove job lifecycle: queued -> running -> completed | failed"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = frozenset({ProveJobStatus.COMPLETED.value, ProveJobStatus.FAILED.value})


class DownloadUrls(_ApiModel):
    proof: Optional[str] = None
    vk: Optional[str] = None
    public_inputs: Optional[str] = Field(default=None, alias="publicInputs")


class ProveJob(_ApiModel):
    """Prove job record.

    ``status`` is kept as the raw string so unexpected values can be echoed
    back to the user verbatim.
    """
    job_id: str = Field(alias="jobId")
    circuit_id: str = Field(alias="circuitId")
    status: str
    verification_mode: Optional[str] = Field(default=None, alias="verificationMode")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    created_at: datetime = Field(alias="createdAt")
    error: Optional[str] = None
    attestation_id: Optional[str] = Field(default=None, alias="attestationId")
    zk_verify_tx_hash: Optional[str] = Field(default=None, alias="zkVerifyTxHash")
    download_urls: Optional[DownloadUrls] = Field(default=None, alias="downloadUrls")
    outputs: Optional[Dict[str, Any]] = None

    @property
    def is_completed(self) -> bool:
        return self.status == ProveJobStatus.COMPLETED.value


class ProveJobSubmission(_ApiModel):
    job_id: str = Field(alias="jobId")


class Circuit(_ApiModel):
    circuit_id: str = Field(alias="circuitId")
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    status: Optional[str] = None
    policy_id: Optional[str] = Field(default=None, alias="policyId")
    validation_status: Optional[str] = Field(default=None, alias="validationStatus")
    scheme: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


# =============================================================================
# Shared proofs
# =============================================================================

class SharedProveJob(_ApiModel):
    """Subset of the prove job exposed to the receiving organization."""
    circuit_name: str = Field(alias="circuitName")
    policy_id: Optional[str] = Field(default=None, alias="policyId")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")


class SharedProof(_ApiModel):
    id: str
    prove_job_id: str = Field(alias="proveJobId")
    sharing_org_id: str = Field(alias="sharingOrgId")
    created_at: datetime = Field(alias="createdAt")
    note: Optional[str] = None
    revoked_at: Optional[datetime] = Field(default=None, alias="revokedAt")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    # Embedded by the sharing party to save a policy round trip. Kept raw so
    # a malformed attachment only fails the embedded resolution attempt.
    policy_spec: Optional[Dict[str, Any]] = Field(default=None, alias="policySpec")
    prove_job: SharedProveJob = Field(alias="proveJob")


class ShareResult(_ApiModel):
    id: str


# =============================================================================
# Credentials
# =============================================================================

class Credential(_ApiModel):
    credential_id: str = Field(alias="credentialId")
    format: str
    issued_at: Optional[datetime] = Field(default=None, alias="issuedAt")
    jwt: str


class VerifyResult(_ApiModel):
    """Outcome of credential signature verification.

    Claim values are raw: numeric, boolean or numeric-as-string.
    """
    valid: bool
    issuer: Optional[str] = None
    subject: Optional[str] = None
    error: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Error codes
# =============================================================================

class ErrorDetail(BaseModel):
    code: str
    message: str
    recoverable: bool


class ErrorCode:
    """Error code registry"""
    # Configuration
    CONFIG_MISSING = "CONFIG_MISSING"

    # Proof retrieval
    PROOF_FETCH_FAILED = "PROOF_FETCH_FAILED"
    JOB_NOT_READY = "JOB_NOT_READY"
    SHARED_PROOF_REVOKED = "SHARED_PROOF_REVOKED"
    SHARED_PROOF_EXPIRED = "SHARED_PROOF_EXPIRED"
    PROOF_POLICY_MISSING = "PROOF_POLICY_MISSING"

    # Policy layer
    POLICY_UNAVAILABLE = "POLICY_UNAVAILABLE"
    POLICY_REJECTED = "POLICY_REJECTED"

    # Freshness
    PROOF_EXPIRED = "PROOF_EXPIRED"

    # Credential layer
    CREDENTIAL_ISSUANCE_FAILED = "CREDENTIAL_ISSUANCE_FAILED"
    CREDENTIAL_VERIFY_FAILED = "CREDENTIAL_VERIFY_FAILED"
    CREDENTIAL_INVALID = "CREDENTIAL_INVALID"

    # API layer
    API_ERROR = "API_ERROR"
    API_AUTH_FAILED = "API_AUTH_FAILED"
    PROVE_JOB_TIMEOUT = "PROVE_JOB_TIMEOUT"

    INTERNAL_ERROR = "INTERNAL_ERROR"


# Only policy lookup failures are recovered locally; every other condition
# terminates the run.
ERROR_RECOVERABILITY: Dict[str, bool] = {
    ErrorCode.CONFIG_MISSING: False,
    ErrorCode.PROOF_FETCH_FAILED: False,
    ErrorCode.JOB_NOT_READY: False,
    ErrorCode.SHARED_PROOF_REVOKED: False,
    ErrorCode.SHARED_PROOF_EXPIRED: False,
    ErrorCode.PROOF_POLICY_MISSING: False,
    ErrorCode.POLICY_UNAVAILABLE: True,     # Recoverable
    ErrorCode.POLICY_REJECTED: False,
    ErrorCode.PROOF_EXPIRED: False,
    ErrorCode.CREDENTIAL_ISSUANCE_FAILED: False,
    ErrorCode.CREDENTIAL_VERIFY_FAILED: False,
    ErrorCode.CREDENTIAL_INVALID: False,
    ErrorCode.API_ERROR: False,
    ErrorCode.API_AUTH_FAILED: False,
    ErrorCode.PROVE_JOB_TIMEOUT: False,
    ErrorCode.INTERNAL_ERROR: False,
}


def to_error_detail(exc: Exception) -> ErrorDetail:
    """Convert domain exception to ErrorDetail for JSON output.

    Extracts error code and message from exception attributes and looks up
    recoverability from ERROR_RECOVERABILITY.
    """
    code = getattr(exc, "code", ErrorCode.INTERNAL_ERROR)
    message = getattr(exc, "message", str(exc))
    recoverable = ERROR_RECOVERABILITY.get(code, False)
    return ErrorDetail(code=code, message=message, recoverable=recoverable)
