"""
Bind verifier configuration constants.

Constants are organized into:
- POLICY: Acceptance rules applied to fetched policy specifications
- CREDENTIAL: How proof credentials are requested
- OPERATIONAL: Deployment-specific settings (env vars)

Domain-specific defaults (TTL, band tables) live in bind_verifier.domains.
"""

import os

# =============================================================================
# POLICY ACCEPTANCE
# =============================================================================


def _parse_accepted_majors() -> frozenset[str]:
    """Parse comma-separated accepted policy major versions from environment.

    Only pre-release policies (0.x) are currently accepted. Full semver
    range matching is not implemented; a version is acceptable when its
    leading component is one of these values.

    Environment variable format:
        BIND_ACCEPTED_POLICY_MAJORS=0,1

    Returns:
        frozenset of accepted major version strings.
    """
    env_value = os.getenv("BIND_ACCEPTED_POLICY_MAJORS", "")
    if env_value:
        return frozenset(m.strip() for m in env_value.split(",") if m.strip())
    return frozenset({"0"})


ACCEPTED_POLICY_MAJORS: frozenset[str] = _parse_accepted_majors()

# Secondary claim name used when the credential does not carry the
# canonical output name
GENERIC_CLAIM_NAME: str = "outputValue"

SECONDS_PER_DAY: int = 24 * 60 * 60

# =============================================================================
# CREDENTIAL ISSUANCE
# =============================================================================

# Credential format requested from the issuance endpoint
CREDENTIAL_FORMAT: str = os.getenv("BIND_CREDENTIAL_FORMAT", "compact")

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

DEFAULT_API_URL: str = "https://api-dev.bindprotocol.xyz"

BIND_API_URL: str = os.getenv("BIND_API_URL", DEFAULT_API_URL)

# Per-request timeout for API calls
API_TIMEOUT_SECONDS: float = float(os.getenv("BIND_API_TIMEOUT", "30.0"))

# Prove job polling (used only by the prove command)
PROVE_POLL_INTERVAL_SECONDS: float = float(os.getenv("BIND_PROVE_POLL_INTERVAL", "2.0"))
PROVE_TIMEOUT_SECONDS: float = float(os.getenv("BIND_PROVE_TIMEOUT", "300.0"))

# Environment variable names read by the CLI
ENV_API_KEY = "BIND_API_KEY"
ENV_VERIFIER_API_KEY = "BIND_VERIFIER_API_KEY"
ENV_PROVE_JOB_ID = "PROVE_JOB_ID"
ENV_SHARED_PROOF_ID = "SHARED_PROOF_ID"
ENV_CIRCUIT_ID = "CIRCUIT_ID"
ENV_VERIFIER_ORG_ID = "VERIFIER_ORG_ID"
ENV_DOMAIN = "BIND_DOMAIN"
