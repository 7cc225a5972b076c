"""Bind Protocol API client.

Thin synchronous wrapper over the Bind REST API used by the verifier and
the prove command. Every call is a single blocking request; the only
loop is wait_for_prove_job, which polls at a fixed interval until the job
reaches a terminal status or the overall timeout passes.

Error mapping:
- 401/403 -> AuthenticationError
- 404 on get_policy -> None (callers fall back to the policy listing)
- any other non-2xx, timeout or transport failure -> BindApiError
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import TypeAdapter

from bind_verifier.api_models import (
    TERMINAL_JOB_STATUSES,
    Circuit,
    Credential,
    ProveJob,
    ProveJobSubmission,
    SharedProof,
    ShareResult,
    VerifyResult,
)
from bind_verifier.core.config import (
    API_TIMEOUT_SECONDS,
    BIND_API_URL,
    CREDENTIAL_FORMAT,
    PROVE_POLL_INTERVAL_SECONDS,
    PROVE_TIMEOUT_SECONDS,
)
from bind_verifier.exceptions import AuthenticationError, BindApiError, ProveJobTimeout
from bind_verifier.policy.models import PolicySpec

logger = logging.getLogger("bind_verifier.client")

API_KEY_HEADER = "X-API-Key"

_POLICY_LIST = TypeAdapter(List[PolicySpec])
_CIRCUIT_LIST = TypeAdapter(List[Circuit])


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from an API error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return response.reason_phrase


class BindClient:
    """Bind API client.

    Use as a context manager so the underlying connection pool is closed:

        with BindClient(api_key) as client:
            job = client.get_prove_job(job_id)

    Args:
        api_key: Organization API key. Empty for public endpoints (policies).
        base_url: API base URL. Defaults to BIND_API_URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: Optional[str] = None,
        timeout: float = API_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key
        self.base_url = (base_url or BIND_API_URL).rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "BindClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Bind API timeout: {method} {path}")
            raise BindApiError(f"Request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Bind API transport error: {method} {path}: {e}")
            raise BindApiError(f"Request failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}) - check your API key",
                status=response.status_code,
            )
        return response

    def _json(self, method: str, path: str, **kwargs) -> Any:
        response = self._request(method, path, **kwargs)
        if response.is_error:
            message = _error_message(response)
            logger.debug(f"Bind API error {response.status_code} for {method} {path}: {message}")
            raise BindApiError(f"API error ({response.status_code}): {message}", status=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise BindApiError(f"Invalid JSON from {method} {path}", status=response.status_code) from e

    # -------------------------------------------------------------------------
    # Prove jobs
    # -------------------------------------------------------------------------

    def get_prove_job(self, job_id: str) -> ProveJob:
        return ProveJob.model_validate(self._json("GET", f"/api/prove/{job_id}"))

    def submit_prove_job(
        self,
        circuit_id: str,
        inputs: Dict[str, str],
        verification_mode: Optional[str] = None,
    ) -> ProveJobSubmission:
        body: Dict[str, Any] = {"circuitId": circuit_id, "inputs": inputs}
        if verification_mode:
            body["verificationMode"] = verification_mode
        return ProveJobSubmission.model_validate(self._json("POST", "/api/prove", json=body))

    def wait_for_prove_job(
        self,
        job_id: str,
        interval: float = PROVE_POLL_INTERVAL_SECONDS,
        timeout: float = PROVE_TIMEOUT_SECONDS,
        on_progress: Optional[Callable[[ProveJob], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> ProveJob:
        """Poll a prove job until it completes or fails.

        Raises:
            ProveJobTimeout: If the job is still running after ``timeout`` seconds.
        """
        deadline = monotonic() + timeout
        while True:
            job = self.get_prove_job(job_id)
            if on_progress is not None:
                on_progress(job)
            if job.status in TERMINAL_JOB_STATUSES:
                return job
            if monotonic() + interval > deadline:
                raise ProveJobTimeout(f"Prove job {job_id} did not complete within {timeout:.0f}s")
            sleep(interval)

    # -------------------------------------------------------------------------
    # Circuits and policies
    # -------------------------------------------------------------------------

    def get_circuit(self, circuit_id: str) -> Circuit:
        return Circuit.model_validate(self._json("GET", f"/api/circuits/{circuit_id}"))

    def list_circuits(self) -> List[Circuit]:
        return _CIRCUIT_LIST.validate_python(self._json("GET", "/api/circuits"))

    def get_policy(self, policy_id: str) -> Optional[PolicySpec]:
        """Fetch a policy by id, or None if the registry does not know it."""
        response = self._request("GET", f"/api/policies/{policy_id}")
        if response.status_code == 404:
            logger.debug(f"Policy not found: {policy_id}")
            return None
        if response.is_error:
            raise BindApiError(
                f"API error ({response.status_code}): {_error_message(response)}",
                status=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise BindApiError(f"Invalid JSON from GET /api/policies/{policy_id}", status=response.status_code) from e
        return PolicySpec.model_validate(data)

    def list_policies(self) -> List[PolicySpec]:
        return _POLICY_LIST.validate_python(self._json("GET", "/api/policies"))

    # -------------------------------------------------------------------------
    # Sharing
    # -------------------------------------------------------------------------

    def get_shared_proof(self, shared_proof_id: str) -> SharedProof:
        return SharedProof.model_validate(self._json("GET", f"/api/shared-proofs/{shared_proof_id}"))

    def share_proof(self, prove_job_id: str, verifier_org_id: str, note: Optional[str] = None) -> ShareResult:
        body = {"proveJobId": prove_job_id, "verifierOrgId": verifier_org_id}
        if note:
            body["note"] = note
        return ShareResult.model_validate(self._json("POST", "/api/shared-proofs", json=body))

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def issue_proof_credential(self, prove_job_id: str, format: str = CREDENTIAL_FORMAT) -> Credential:
        data = self._json("POST", f"/api/prove/{prove_job_id}/credential", json={"format": format})
        return Credential.model_validate(data)

    def verify_credential(self, jwt: str) -> VerifyResult:
        """Verify the issuer signature and decode the disclosed claims."""
        return VerifyResult.model_validate(self._json("POST", "/api/credentials/verify", json={"credential": jwt}))
