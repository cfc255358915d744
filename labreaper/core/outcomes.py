"""Resource references and per-resource outcomes collected during a run."""
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


class ResourceKind(Enum):
    INSTANCE = 'EC2 Instances'
    KEY_PAIR = 'Key Pairs'
    SECURITY_GROUP = 'Security Groups'
    BUCKET = 'S3 Buckets'
    LOCAL_FILE = 'Local Files'


class Status(Enum):
    PLANNED = 'planned'
    DELETED = 'deleted'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass(frozen=True)
class ResourceRef:
    """A discovered resource. Identity is (kind, id)."""
    kind: ResourceKind
    id: str
    display_name: str = field(default='', compare=False)

    def label(self) -> str:
        if self.display_name and self.display_name != self.id:
            return f"{self.id} ({self.display_name})"
        return self.id


@dataclass(frozen=True)
class VersionRef:
    """One entry of a versioned bucket listing."""
    key: str
    version_id: str
    is_delete_marker: bool = False

    def as_identifier(self) -> Dict[str, str]:
        return {'Key': self.key, 'VersionId': self.version_id}


@dataclass(frozen=True)
class Outcome:
    ref: ResourceRef
    status: Status
    reason: str = ''

    @classmethod
    def planned(cls, ref: ResourceRef) -> 'Outcome':
        return cls(ref, Status.PLANNED)

    @classmethod
    def deleted(cls, ref: ResourceRef) -> 'Outcome':
        return cls(ref, Status.DELETED)

    @classmethod
    def skipped(cls, ref: ResourceRef, reason: str) -> 'Outcome':
        return cls(ref, Status.SKIPPED, reason)

    @classmethod
    def failed(cls, ref: ResourceRef, reason: str) -> 'Outcome':
        return cls(ref, Status.FAILED, reason)


class DeletionPlan:
    """Snapshot of discovered resources in discovery order; ``refs(kind)`` selects one kind.

    The plan is immutable once built; nothing is re-validated before delete.
    """

    def __init__(self, refs: Iterable[ResourceRef] = ()):
        self._refs: Tuple[ResourceRef, ...] = tuple(refs)

    def __iter__(self) -> Iterator[ResourceRef]:
        return iter(self._refs)

    def __len__(self) -> int:
        return len(self._refs)

    def __bool__(self) -> bool:
        return bool(self._refs)

    def refs(self, kind: Optional[ResourceKind] = None) -> Tuple[ResourceRef, ...]:
        if kind is None:
            return self._refs
        return tuple(r for r in self._refs if r.kind is kind)


class RunOutcome:
    """Ordered outcomes of one reaper run."""

    def __init__(self, outcomes: Iterable[Outcome] = ()):
        self._outcomes: List[Outcome] = list(outcomes)

    def add(self, outcome: Outcome) -> None:
        self._outcomes.append(outcome)

    def extend(self, outcomes: Iterable[Outcome]) -> None:
        self._outcomes.extend(outcomes)

    def __iter__(self) -> Iterator[Outcome]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    @property
    def refs(self) -> List[ResourceRef]:
        return [o.ref for o in self._outcomes]

    @property
    def failures(self) -> List[Outcome]:
        return [o for o in self._outcomes if o.status is Status.FAILED]

    @property
    def has_failures(self) -> bool:
        return any(o.status is Status.FAILED for o in self._outcomes)

    def count(self, status: Status, kind: Optional[ResourceKind] = None) -> int:
        return sum(1 for o in self._outcomes
                   if o.status is status and (kind is None or o.ref.kind is kind))

    def summary(self) -> 'OrderedDict[ResourceKind, Dict[Status, int]]':
        """Per-kind counts of each status, kinds in the order first seen."""
        counts: 'OrderedDict[ResourceKind, Dict[Status, int]]' = OrderedDict()
        for o in self._outcomes:
            per_kind = counts.setdefault(o.ref.kind, {s: 0 for s in Status})
            per_kind[o.status] += 1
        return counts
