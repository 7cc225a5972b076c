"""Console and JSON rendering.

Renderers return lists of lines; the CLI decides where they go.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from bind_verifier.api_models import Circuit, ProveJob, to_error_detail
from bind_verifier.domains import DomainProfile
from bind_verifier.exceptions import BindVerifyError, ProofExpired
from bind_verifier.policy.models import BandDerivation, PolicySpec
from bind_verifier.scoring import RulePreview, ScorePreview
from bind_verifier.verify import VerificationReport, VerificationTrace

WIDTH = 60


def rule(char: str = "=") -> str:
    return char * WIDTH


def banner(title: str, char: str = "=") -> List[str]:
    return [title, rule(char), ""]


def render_trace(trace: VerificationTrace) -> List[str]:
    lines: List[str] = []
    for number, record in trace.numbered():
        lines.append(f"Step {number}: {record.title}...")
        lines.extend(f"  {finding}" for finding in record.findings)
        lines.append("")
    return lines


def render_claims(report: VerificationReport) -> List[str]:
    lines = ["Credential Claims:"]
    target_names = (report.domain.target_output, report.resolution.claim_name)
    for key, value in report.verify_result.claims.items():
        if key in target_names:
            lines.append(f"  {key}: {value} ({report.resolution.label})")
        else:
            lines.append(f"  {key}: {value}")
    if not report.verify_result.claims:
        lines.append("  (none)")
    return lines


def render_report(report: VerificationReport) -> List[str]:
    domain = report.domain
    decision = report.decision
    lines = render_trace(report.trace)
    lines += ["Credential verification successful!", ""]
    lines += render_claims(report)
    lines.append("")

    if decision.recommendation:
        lines += [rule("-"), "Decision Guidance", rule("-")]
        lines.append(f"  Recommendation: {decision.recommendation}")
        lines.extend(f"  - {note}" for note in decision.notes)
        lines.append("")

    lines += banner("Verification Complete")[:2]
    lines += [
        "",
        "What was proven:",
        f"  Policy: {report.summary.policy_title}",
        f"  Circuit: {report.summary.circuit_name}",
        f"  Prover: {report.summary.prover}",
        f"  Result: {decision.outcome}",
        "",
    ]
    if domain.privacy_notes:
        lines.append("Privacy preserved - verified without seeing:")
        lines.extend(f"  - {note}" for note in domain.privacy_notes)
        lines.append("")
    return lines


def render_failure(exc: BindVerifyError, trace: Optional[VerificationTrace] = None) -> List[str]:
    lines = render_trace(trace) if trace is not None else []
    lines.append(f"Error: {exc.message}")
    if isinstance(exc, ProofExpired):
        lines += ["", exc.hint]
    return lines


def report_to_dict(report: VerificationReport) -> Dict[str, Any]:
    freshness = report.freshness
    return {
        "run_id": report.trace.run_id,
        "mode": report.mode.value,
        "domain": report.domain.name,
        "steps": [
            {"step": n, "stage": r.stage.value, "title": r.title, "findings": r.findings}
            for n, r in report.trace.numbered()
        ],
        "policy": {
            "id": report.policy.id,
            "version": report.policy.version,
            "validated": report.policy_validated,
            "findings": report.validation.findings if report.validation else [],
        } if report.policy else None,
        "freshness": {
            "proved_at": freshness.proved_at.isoformat(),
            "age_days": freshness.age_days,
            "ttl_days": freshness.ttl_days,
            "ttl_source": freshness.ttl_source,
        },
        "credential": {
            "id": report.credential.credential_id,
            "format": report.credential.format,
            "issuer": report.verify_result.issuer,
            "subject": report.verify_result.subject,
        },
        "claims": report.verify_result.claims,
        "decision": {
            "outcome": report.decision.outcome,
            "recommendation": report.decision.recommendation,
            "label_source": report.resolution.source,
        },
        "summary": {
            "job_id": report.summary.job_id,
            "policy": report.summary.policy_title,
            "circuit": report.summary.circuit_name,
            "prover": report.summary.prover,
        },
    }


def failure_to_dict(exc: BindVerifyError, trace: Optional[VerificationTrace] = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"error": to_error_detail(exc).model_dump()}
    if trace is not None:
        result["run_id"] = trace.run_id
        result["steps"] = [
            {"step": n, "stage": r.stage.value, "title": r.title, "findings": r.findings}
            for n, r in trace.numbered()
        ]
    if isinstance(exc, ProofExpired):
        result["hint"] = exc.hint
    return result


# =============================================================================
# Policy, circuit and prove job views
# =============================================================================


def render_policy(policy: PolicySpec) -> List[str]:
    meta = policy.metadata
    lines = [rule("-"), "Policy Details", rule("-")]
    lines.append(f"ID: {policy.id}")
    lines.append(f"Title: {meta.title if meta and meta.title else 'N/A'}")
    lines.append(f"Version: {policy.version}")
    lines.append(f"Namespace: {meta.namespace if meta and meta.namespace else 'N/A'}")
    if meta and meta.description:
        lines.append(f"Description: {meta.description}")
    lines.append(f"Subject Type: {policy.subject_type or 'N/A'}")
    if policy.ttl:
        lines.append(f"Validity: {policy.ttl}")
    lines += ["", "Outputs:"]
    for output in policy.outputs:
        derivation = output.derive.kind
        if isinstance(output.derive, BandDerivation):
            derivation += f" ({', '.join(output.derive.labels)})"
        lines.append(f"  - {output.name}: {output.type} [{derivation}]")
    if policy.disclosure and policy.disclosure.expose_claims:
        lines += ["", f"Disclosed Claims: {', '.join(policy.disclosure.expose_claims)}"]
    policy_hash = policy.integrity.policy_hash if policy.integrity else None
    lines.append(f"Policy Hash: {policy_hash or 'N/A'}")
    return lines


def render_circuit(circuit: Circuit) -> List[str]:
    lines = [rule("-"), f"Circuit ID: {circuit.circuit_id}", f"  Name: {circuit.name}"]
    if circuit.description:
        lines.append(f"  Description: {circuit.description}")
    lines.append(f"  Version: {circuit.version}")
    lines.append(f"  Status: {circuit.status}")
    if circuit.policy_id:
        lines.append(f"  Policy ID: {circuit.policy_id}")
    if circuit.validation_status:
        lines.append(f"  Validation: {circuit.validation_status}")
    lines.append(f"  Scheme: {circuit.scheme}")
    if circuit.created_at is not None:
        lines.append(f"  Created: {circuit.created_at.isoformat()}")
    return lines


def render_preview(
    domain: DomainProfile,
    inputs: Mapping[str, str],
    preview: Union[ScorePreview, RulePreview, None],
) -> List[str]:
    lines = ["Inputs:"]
    lines.extend(f"  {k}: {v}" for k, v in inputs.items())
    lines += ["", "Expected Evaluation (advisory, not enforced):"]
    if isinstance(preview, ScorePreview):
        lines.extend(f"  {item}" for item in preview.breakdown)
        lines.append(f"  Total Score: {preview.score}")
        lines.append(f"  Expected {domain.target_output}: {preview.band}")
        for warning in preview.warnings:
            lines.append(f"  WARNING: {warning}")
    elif isinstance(preview, RulePreview):
        for description, ok in preview.checks:
            lines.append(f"  [{'PASS' if ok else 'FAIL'}] {description}")
        lines.append(f"  Expected {domain.target_output}: {preview.passed}")
    else:
        lines.append("  (no preview for this domain)")
    return lines


def render_job_result(job: ProveJob, duration: float) -> List[str]:
    lines = [rule("-"), "Result", rule("-"), f"Status: {job.status}", f"Duration: {duration:.1f}s"]
    if job.is_completed:
        lines += ["", "Proof generated successfully!", f"Verification Mode: {job.verification_mode}"]
        if job.attestation_id:
            lines.append(f"zkVerify Attestation: {job.attestation_id}")
        if job.zk_verify_tx_hash:
            lines.append(f"Transaction Hash: {job.zk_verify_tx_hash}")
        urls = job.download_urls
        if urls is not None:
            lines += [
                "",
                "Download URLs (signed, time-limited):",
                f"  Proof: {urls.proof}",
                f"  Verification Key: {urls.vk}",
                f"  Public Inputs: {urls.public_inputs}",
            ]
    elif job.error:
        lines += ["", f"Error: {job.error}"]
    return lines
