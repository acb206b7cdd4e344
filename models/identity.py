# models/identity.py
"""
Identity references and resolution results.

An identity reference names a person across both user partitions. References
arrive from cookies, URLs and stored conversations in several encodings, so
they are canonicalized exactly once, here, before any store sees them.
"""
import uuid
from dataclasses import dataclass, field

from pydantic import BaseModel

from errors import InvalidArgumentError
from models.user import Partition, Role, partition_for_role

UNKNOWN_USER_NAME = "Unknown User"


def canonical_key(raw: str) -> str:
    """
    Normalize a reference key.
    UUIDs in any accepted spelling (upper case, no hyphens, braces, urn:uuid:)
    become the lower-case hyphenated form; anything else is only stripped.
    """
    key = str(raw).strip()
    try:
        return str(uuid.UUID(key))
    except ValueError:
        return key


def is_uuid_key(key: str) -> bool:
    try:
        return str(uuid.UUID(key)) == key
    except ValueError:
        return False


@dataclass(frozen=True)
class IdentityRef:
    key: str
    partition: Partition | None = None

    @classmethod
    def parse(cls, raw, role: Role | str | None = None) -> "IdentityRef":
        """
        Build a reference from "<partition>:<key>" or a bare key.
        An explicit partition tag wins over the role hint.
        """
        if raw is None or not str(raw).strip():
            raise InvalidArgumentError("Identity reference is required")
        text = str(raw).strip()
        partition = None
        prefix, sep, rest = text.partition(":")
        if sep and prefix.lower() in {p.value for p in Partition}:
            partition = Partition(prefix.lower())
            text = rest
        key = canonical_key(text)
        if not key:
            raise InvalidArgumentError("Identity reference is required")
        return cls(key=key, partition=partition or partition_for_role(role))

    def __str__(self) -> str:
        return self.key


class DisplayIdentity(BaseModel):
    """What the UI needs to show a participant, sender or receiver."""

    id: str
    name: str
    email: str = ""
    role: Role | None = None
    partition: Partition | None = None
    # The authoritative account id; differs from `id` when the reference predates a migration
    account_id: str | None = None

    @classmethod
    def unknown(cls, key: str) -> "DisplayIdentity":
        return cls(id=key, name=UNKNOWN_USER_NAME, email="")


@dataclass
class ResolutionStep:
    step: str
    partition: str | None
    found: bool
    error: str | None = None
    transient: bool = False

    def as_dict(self) -> dict:
        data = {"step": self.step, "partition": self.partition, "found": self.found}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ResolutionTrace:
    reference: str
    steps: list[ResolutionStep] = field(default_factory=list)

    def record(self, step: str, partition, found: bool, error: Exception | None = None, transient: bool = False):
        name = partition.value if isinstance(partition, Partition) else partition
        self.steps.append(ResolutionStep(step, name, found, str(error) if error else None, transient))

    @property
    def had_transient_failure(self) -> bool:
        return any(s.transient for s in self.steps)

    def as_dict(self) -> dict:
        return {"reference": self.reference, "steps": [s.as_dict() for s in self.steps]}


@dataclass
class Resolution:
    identity: DisplayIdentity
    found: bool
    source: str | None
    trace: ResolutionTrace
    # Ids of the same person: the reference key, the account id and its pre-migration id
    aliases: frozenset[str] = frozenset()
