"""
Snapshot tracking and field-level diffing.

A Snapshot captures the canonical encoding of every field of a session as
it was loaded. On the next save, compute_diff() compares the live session
against it to find the fields that must be rewritten and the fields that
must be removed.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from session.codec import encode

# Reserved field name under which older writers kept the snapshot inside
# the session itself. Never returned as data, and deleted from the hash
# on the next save when an older writer persisted it.
SNAPSHOT_FIELD = "_original"


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable capture of a session's encoded fields as of the last load.

    Attributes:
        fields: Read-only mapping of field name to canonical encoding.
        legacy: True when the session was loaded from the single-blob
            shape. A legacy snapshot carries no fields and forces the next
            save to rewrite the whole record.
        stale: Stored hash fields that are not session data, such as a
            persisted reserved field. The next save deletes them.
    """
    fields: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    legacy: bool = False
    stale: FrozenSet[str] = frozenset()

    @classmethod
    def capture(cls, data: Mapping[str, Any], stale: Iterable[str] = ()) -> "Snapshot":
        """Encode every field of ``data`` and freeze the result."""
        encoded = {
            name: encode(value)
            for name, value in data.items()
            if name != SNAPSHOT_FIELD
        }
        return cls(fields=MappingProxyType(encoded), stale=frozenset(stale))

    @classmethod
    def legacy_marker(cls) -> "Snapshot":
        return cls(legacy=True)

    @property
    def is_empty(self) -> bool:
        return not self.fields

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __len__(self) -> int:
        return len(self.fields)


@dataclass(frozen=True)
class FieldDiff:
    """
    Minimal set of hash changes needed to bring a stored record up to date.

    Attributes:
        updates: Field name to encoded value, for new or changed fields.
        deletions: Fields present in the snapshot but gone from the session,
            plus the snapshot's stale fields.
    """
    updates: Dict[str, str]
    deletions: List[str]

    @property
    def is_empty(self) -> bool:
        return not self.updates and not self.deletions


def session_fields(data: Mapping[str, Any]) -> List[str]:
    """Names of the fields that are persisted for ``data``."""
    return [name for name in data if name != SNAPSHOT_FIELD]


def compute_diff(snapshot: Optional[Snapshot], data: Mapping[str, Any]) -> FieldDiff:
    """
    Compare a live session against the snapshot it was loaded with.

    Without a snapshot (or with an empty or legacy one) every field is an
    update and nothing is deleted.

    Args:
        snapshot: The snapshot attached at load time, if any.
        data: The current session fields.

    Returns:
        FieldDiff with the changed fields and the removed fields.

    Raises:
        SessionEncodeError: If a current value cannot be encoded.
    """
    original: Mapping[str, str] = snapshot.fields if snapshot is not None else {}
    names = session_fields(data)

    present = set(names)
    deletions = [name for name in original if name not in present]
    if snapshot is not None:
        deletions.extend(sorted(snapshot.stale))

    updates: Dict[str, str] = {}
    for name in names:
        encoded = encode(data[name])
        if original.get(name) != encoded:
            updates[name] = encoded

    return FieldDiff(updates=updates, deletions=deletions)
