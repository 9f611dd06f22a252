"""Collection descriptors and record shaping.

Records are stored as flat dicts. Each collection has:
- `id`: opaque surrogate identifier assigned at creation, never changed
- a unique key field (`admissionNumber` for students, `isbn` for books)

Students also carry `password`, which holds the credential hash and is
stripped from anything returned to clients.
"""

from dataclasses import dataclass, field
from typing import FrozenSet

ID_FIELD = "id"
CREDENTIAL_FIELD = "password"


@dataclass(frozen=True)
class CollectionSpec:
    """Static description of one entity collection."""
    name: str
    key_field: str
    entity_label: str
    key_label: str
    private_fields: FrozenSet[str] = field(default_factory=frozenset)

    def public(self, record: dict) -> dict:
        """Return a copy of `record` without private fields."""
        return {k: v for k, v in record.items() if k not in self.private_fields}


STUDENTS = CollectionSpec(
    name="students",
    key_field="admissionNumber",
    entity_label="Student",
    key_label="Admission number",
    private_fields=frozenset({CREDENTIAL_FIELD}),
)

BOOKS = CollectionSpec(
    name="books",
    key_field="isbn",
    entity_label="Book",
    key_label="ISBN",
)
