"""bind-verify command line interface.

Commands:
    bind-verify verify      Verify a proof credential (direct or shared)
    bind-verify policy      Show a policy specification
    bind-verify circuits    List circuits available to the organization
    bind-verify prove       Submit a prove job and wait for the result

Exit codes: 0 on success, 1 on any fatal condition.
"""

import json
import logging
import os
import time
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import typer

from bind_verifier.client import BindClient
from bind_verifier.core.config import (
    ENV_API_KEY,
    ENV_CIRCUIT_ID,
    ENV_DOMAIN,
    ENV_PROVE_JOB_ID,
    ENV_SHARED_PROOF_ID,
    ENV_VERIFIER_API_KEY,
    ENV_VERIFIER_ORG_ID,
)
from bind_verifier.core.logging import configure_logging
from bind_verifier.domains import VEHICLE_RISK, DomainProfile, domain_names, get_domain
from bind_verifier.exceptions import BindVerifyError, ConfigurationError, PolicyRejected
from bind_verifier.policy.resolver import PolicyResolved, direct_lookup, listing_scan, resolve_policy
from bind_verifier.report import (
    banner,
    failure_to_dict,
    render_circuit,
    render_failure,
    render_job_result,
    render_policy,
    render_preview,
    render_report,
    report_to_dict,
    rule,
)
from bind_verifier.verify import VerificationOrchestrator, VerificationTrace

log = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

app = typer.Typer(
    name="bind-verify",
    help="Verify Bind Protocol proof credentials against policy.",
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    text = "text"
    json = "json"


# =============================================================================
# Helpers
# =============================================================================


def echo_lines(lines: Iterable[str]) -> None:
    for line in lines:
        typer.echo(line)


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def require_env(var: str, purpose: str) -> str:
    """Read a required environment variable.

    Raises:
        ConfigurationError: If the variable is unset or empty.
    """
    value = os.getenv(var, "").strip()
    if not value:
        raise ConfigurationError.missing_env(var, purpose)
    return value


def resolve_domain(name: str) -> DomainProfile:
    try:
        return get_domain(name)
    except KeyError as e:
        raise ConfigurationError(e.args[0]) from None


def parse_inputs(items: List[str]) -> Dict[str, str]:
    """Parse repeated ``key=value`` options into an ordered dict."""
    inputs: Dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Invalid input {item!r}, expected key=value")
        inputs[key.strip()] = value.strip()
    return inputs


def fail(
    exc: BindVerifyError,
    format: OutputFormat = OutputFormat.text,
    trace: Optional[VerificationTrace] = None,
) -> None:
    """Print a fatal error (with the partial trace, if any) and exit 1."""
    if format == OutputFormat.json:
        echo_json(failure_to_dict(exc, trace))
    else:
        echo_lines(render_failure(exc, trace))
    raise typer.Exit(code=EXIT_FAILURE)


# =============================================================================
# Commands
# =============================================================================


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level for stderr JSON logs (default: BIND_LOG_LEVEL or WARNING)",
    ),
    log_file: Optional[str] = typer.Option(
        None,
        "--log-file",
        help="Also append JSON logs to this file (default: BIND_LOG_FILE)",
    ),
) -> None:
    configure_logging(log_file=log_file, log_level=log_level)


@app.command("verify")
def verify_cmd(
    job_id: Optional[str] = typer.Option(
        None,
        "--job-id",
        envvar=ENV_PROVE_JOB_ID,
        help="Prove job owned by your organization (direct verification)",
    ),
    shared_proof_id: Optional[str] = typer.Option(
        None,
        "--shared-proof-id",
        envvar=ENV_SHARED_PROOF_ID,
        help="Proof shared with your organization (shared verification)",
    ),
    domain: str = typer.Option(
        VEHICLE_RISK.name,
        "--domain",
        "-d",
        envvar=ENV_DOMAIN,
        help=f"Decision domain: {', '.join(domain_names())}",
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.text,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Verify a proof credential and report the decision.

    Direct verification needs BIND_API_KEY; shared verification needs
    BIND_VERIFIER_API_KEY. Both are checked before any network access.

    Examples:
        PROVE_JOB_ID=abc123 bind-verify verify
        bind-verify verify --shared-proof-id sp_42 --domain credit-score
    """
    trace = VerificationTrace()
    try:
        profile = resolve_domain(domain)
        if job_id and shared_proof_id:
            raise ConfigurationError("Specify either --job-id or --shared-proof-id, not both")
        if shared_proof_id:
            api_key = require_env(ENV_VERIFIER_API_KEY, "shared proof verification")
            title = "Verifier (Shared Proof)"
        elif job_id:
            api_key = require_env(ENV_API_KEY, "direct verification")
            title = "Verifier (Direct)"
        else:
            raise ConfigurationError(
                f"A proof is required: pass --job-id or --shared-proof-id "
                f"(or set {ENV_PROVE_JOB_ID} / {ENV_SHARED_PROOF_ID})"
            )

        if format == OutputFormat.text:
            echo_lines(banner(f"Bind Protocol - {profile.title} {title}"))

        with BindClient(api_key) as client:
            orchestrator = VerificationOrchestrator(client, profile)
            if shared_proof_id:
                report = orchestrator.verify_shared(shared_proof_id, trace)
            else:
                report = orchestrator.verify_direct(job_id, trace)
    except BindVerifyError as e:
        fail(e, format, trace if trace.records else None)
        return

    if format == OutputFormat.json:
        echo_json(report_to_dict(report))
    else:
        echo_lines(render_report(report))


@app.command("policy")
def policy_cmd(
    policy_id: Optional[str] = typer.Argument(
        None,
        help="Policy id (default: the domain's policy)",
    ),
    domain: str = typer.Option(
        VEHICLE_RISK.name,
        "--domain",
        "-d",
        envvar=ENV_DOMAIN,
        help="Domain whose policy is shown and whose requirements are checked",
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.text,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Show a policy specification. Policies are public; no API key is needed."""
    try:
        profile = resolve_domain(domain)
        policy_id = policy_id or profile.policy_id
        with BindClient() as client:
            resolution = resolve_policy(policy_id, [direct_lookup(client), listing_scan(client)])
        if not isinstance(resolution, PolicyResolved):
            raise resolution.as_error()
    except BindVerifyError as e:
        fail(e, format)
        return

    policy = resolution.policy
    if format == OutputFormat.json:
        echo_json(policy.model_dump(mode="json", by_alias=True, exclude_none=True))
        return

    echo_lines(render_policy(policy))
    if policy.id != profile.policy_id:
        return

    typer.echo("")
    typer.echo(f"Acceptability for {profile.name}:")
    try:
        validation = profile.validator().validate(policy)
    except PolicyRejected as e:
        typer.echo(f"  REJECTED: {e.message}")
        return
    echo_lines(f"  {finding}" for finding in validation.findings)
    typer.echo("  ACCEPTED")


@app.command("circuits")
def circuits_cmd(
    format: OutputFormat = typer.Option(
        OutputFormat.text,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """List circuits available to your organization (needs BIND_API_KEY)."""
    try:
        api_key = require_env(ENV_API_KEY, "listing circuits")
        with BindClient(api_key) as client:
            circuits = client.list_circuits()
    except BindVerifyError as e:
        fail(e, format)
        return

    if format == OutputFormat.json:
        echo_json([c.model_dump(mode="json", by_alias=True) for c in circuits])
        return

    typer.echo(f"Found {len(circuits)} circuit(s):")
    typer.echo("")
    for circuit in circuits:
        echo_lines(render_circuit(circuit))
    if circuits:
        typer.echo(rule("-"))


@app.command("prove")
def prove_cmd(
    domain: str = typer.Option(
        VEHICLE_RISK.name,
        "--domain",
        "-d",
        envvar=ENV_DOMAIN,
        help="Decision domain whose circuit is proven",
    ),
    inputs: List[str] = typer.Option(
        [],
        "--input",
        "-i",
        help="Circuit input as key=value (repeatable; default: domain sample inputs)",
    ),
    circuit_id: Optional[str] = typer.Option(
        None,
        "--circuit-id",
        envvar=ENV_CIRCUIT_ID,
        help="Circuit to prove (default: derived from the domain policy)",
    ),
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Poll until the job completes",
    ),
) -> None:
    """Submit a prove job, wait for it, and optionally share the proof.

    The expected outcome shown before submission is advisory only; the
    circuit output is authoritative. When VERIFIER_ORG_ID is set the
    completed proof is shared with that organization.
    """
    try:
        api_key = require_env(ENV_API_KEY, "submitting prove jobs")
        profile = resolve_domain(domain)
        values = parse_inputs(inputs) or dict(profile.sample_inputs)
        circuit_id = circuit_id or profile.circuit_id

        echo_lines(banner(f"Bind Protocol - {profile.title} Prover"))
        typer.echo(f"Circuit: {circuit_id}")
        typer.echo("")
        echo_lines(render_preview(profile, values, _preview(profile, values)))
        typer.echo("")

        with BindClient(api_key) as client:
            submission = client.submit_prove_job(circuit_id, values)
            typer.echo(f"Job submitted: {submission.job_id}")
            if not wait:
                return

            typer.echo("Waiting for proof generation...")
            started = time.monotonic()
            job = client.wait_for_prove_job(submission.job_id, on_progress=_progress_printer())
            echo_lines(render_job_result(job, time.monotonic() - started))
            if not job.is_completed:
                raise typer.Exit(code=EXIT_FAILURE)

            verifier_org_id = os.getenv(ENV_VERIFIER_ORG_ID, "").strip()
            typer.echo("")
            if verifier_org_id:
                shared = client.share_proof(job.job_id, verifier_org_id, note=f"{profile.title} proof")
                typer.echo(f"Proof shared with {verifier_org_id}: {shared.id}")
                typer.echo(f"Verify with: {ENV_SHARED_PROOF_ID}={shared.id} bind-verify verify --domain {profile.name}")
            else:
                typer.echo(f"Verify with: {ENV_PROVE_JOB_ID}={job.job_id} bind-verify verify --domain {profile.name}")
    except BindVerifyError as e:
        fail(e)


def _preview(profile: DomainProfile, values: Dict[str, str]):
    if profile.preview is None:
        return None
    try:
        return profile.preview({k: float(v) for k, v in values.items()})
    except (KeyError, ValueError) as e:
        log.info(f"No preview for inputs {sorted(values)}: {e!r}")
        return None


def _progress_printer():
    last_status = None

    def on_progress(job) -> None:
        nonlocal last_status
        if job.status != last_status:
            typer.echo(f"  Status: {job.status}")
            last_status = job.status

    return on_progress


def main() -> None:
    app()


if __name__ == "__main__":
    main()
