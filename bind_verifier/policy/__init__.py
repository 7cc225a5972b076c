# Policy - specification models, acceptability validation and resolution

from bind_verifier.policy.models import (
    Band,
    BandDerivation,
    DerivationKind,
    DisclosureSpec,
    OpaqueDerivation,
    PassFailDerivation,
    PolicyOutput,
    PolicySpec,
)

__all__ = [
    "Band",
    "BandDerivation",
    "DerivationKind",
    "DisclosureSpec",
    "OpaqueDerivation",
    "PassFailDerivation",
    "PolicyOutput",
    "PolicySpec",
]
