"""
In-memory session record.

A SessionRecord pairs the session's field values with the Snapshot it was
loaded with. Business code reads and mutates the record like a dict; the
snapshot travels alongside it and is never mixed into the fields.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, MutableMapping, Optional

from session.snapshot import Snapshot

# Reserved field holding cookie metadata; its "maxAge" (milliseconds) is
# the expiration hint used when no fixed ttl is configured.
COOKIE_FIELD = "cookie"
MAX_AGE_KEY = "maxAge"


@dataclass
class SessionRecord(MutableMapping[str, Any]):
    """
    A session's fields plus the optional snapshot from its last load.

    A record with no snapshot is treated as new: the next save writes
    every field and deletes nothing.

    Attributes:
        data: Session fields, each a JSON-serializable value.
        snapshot: Snapshot attached by the store on load, consumed by the
            next save.
    """
    data: Dict[str, Any] = field(default_factory=dict)
    snapshot: Optional[Snapshot] = None

    def __getitem__(self, name: str) -> Any:
        return self.data[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.data[name] = value

    def __delitem__(self, name: str) -> None:
        del self.data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def is_new(self) -> bool:
        """True when the next save must write every field."""
        return self.snapshot is None or self.snapshot.is_empty

    @property
    def cookie(self) -> Any:
        return self.data.get(COOKIE_FIELD)

    def detach_snapshot(self) -> Optional[Snapshot]:
        """Remove and return the attached snapshot."""
        snapshot, self.snapshot = self.snapshot, None
        return snapshot
