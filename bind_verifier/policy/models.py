"""Policy specification models.

A policy specification is the declarative document describing what a proof
attests: the accepted subject, the outputs the circuit computes, which of
them are disclosed as plaintext claims, and how long a proof stays valid.

Output derivations are a tagged variant over ``kind``. Only the fields
relevant to a kind live on its model (band tables exist only on BAND);
unknown kinds are carried as OpaqueDerivation so newer policies still parse.
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class DerivationKind(str, Enum):
    """Derivation kinds with dedicated interpretation rules."""
    BAND = "BAND"
    PASS_FAIL = "PASS_FAIL"


class _PolicyModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Band(_PolicyModel):
    """One entry of an ordered band table. Its list index is the encoded value."""
    label: str


class BandDerivation(_PolicyModel):
    kind: Literal["BAND"] = "BAND"
    # Lenient: an empty table is a policy rejection, not a parse failure
    bands: List[Band] = Field(default_factory=list)

    @property
    def labels(self) -> List[str]:
        return [b.label for b in self.bands]


class PassFailDerivation(_PolicyModel):
    kind: Literal["PASS_FAIL"] = "PASS_FAIL"


class OpaqueDerivation(_PolicyModel):
    """Derivation kind without dedicated handling."""
    kind: str


def _derivation_tag(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("kind")
    else:
        kind = getattr(value, "kind", None)
    if kind in (DerivationKind.BAND.value, DerivationKind.PASS_FAIL.value):
        return kind
    return "OTHER"


Derivation = Annotated[
    Union[
        Annotated[BandDerivation, Tag("BAND")],
        Annotated[PassFailDerivation, Tag("PASS_FAIL")],
        Annotated[OpaqueDerivation, Tag("OTHER")],
    ],
    Discriminator(_derivation_tag),
]


class PolicyOutput(_PolicyModel):
    """Declared circuit output."""
    name: str
    type: str
    derive: Derivation


class PolicyMetadata(_PolicyModel):
    title: Optional[str] = None
    namespace: Optional[str] = None
    description: Optional[str] = None


class PolicySubject(_PolicyModel):
    type: str


class DisclosureSpec(_PolicyModel):
    """Output names the policy promises to expose as plaintext claims."""
    expose_claims: List[str] = Field(default_factory=list, alias="exposeClaims")


class ValiditySpec(_PolicyModel):
    ttl: Optional[str] = None


class IntegritySpec(_PolicyModel):
    policy_hash: Optional[str] = Field(default=None, alias="policyHash")


class PolicySpec(_PolicyModel):
    """Policy specification as served by the policy registry."""
    id: str
    version: str
    metadata: Optional[PolicyMetadata] = None
    subject: Optional[PolicySubject] = None
    outputs: List[PolicyOutput] = Field(default_factory=list)
    disclosure: Optional[DisclosureSpec] = None
    validity: Optional[ValiditySpec] = None
    integrity: Optional[IntegritySpec] = None

    @property
    def title(self) -> str:
        """Human title, falling back to the policy id."""
        if self.metadata and self.metadata.title:
            return self.metadata.title
        return self.id

    @property
    def subject_type(self) -> Optional[str]:
        return self.subject.type if self.subject else None

    @property
    def ttl(self) -> Optional[str]:
        return self.validity.ttl if self.validity else None

    def find_outputs(self, name: str) -> List[PolicyOutput]:
        return [o for o in self.outputs if o.name == name]

    def find_output(self, name: str) -> Optional[PolicyOutput]:
        """Return the first output declared under ``name``, if any."""
        matches = self.find_outputs(name)
        return matches[0] if matches else None

    def discloses(self, name: str) -> bool:
        return bool(self.disclosure and name in self.disclosure.expose_claims)
