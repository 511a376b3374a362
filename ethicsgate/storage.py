"""Persistence collaborators.

A :class:`Store` offers read-by-id, insert and conditional update for every
record type. ``update_proposal`` is a compare-and-swap on ``version`` so two
writers acting on the same snapshot cannot both win.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import yaml

from . import config
from .errors import CollaboratorError, InvalidTransition, NotFound
from .models import Annotation, AnnotationReply, Organization, Proposal, Review, User
from .utils import dump_yaml, ensure_dir, file_lock, load_yaml

RECORD_TYPES: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "organizations": Organization.from_dict,
    "users": User.from_dict,
    "proposals": Proposal.from_dict,
    "annotations": Annotation.from_dict,
    "annotation_replies": AnnotationReply.from_dict,
    "reviews": Review.from_dict,
}


class Store(ABC):
    """Record-level persistence. Subclasses provide the raw primitives."""

    @abstractmethod
    def _read(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _write(self, kind: str, record_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def _delete(self, kind: str, record_id: str) -> None:
        ...

    @abstractmethod
    def _scan(self, kind: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _locked(self, kind: str, record_id: str):
        """Context manager serializing read-modify-write on one record."""

    # generic helpers

    def _get(self, kind: str, record_id: str) -> Any:
        data = self._read(kind, record_id)
        if data is None:
            raise NotFound(f"{kind[:-1]} {record_id} not found")
        return RECORD_TYPES[kind](data)

    def _all(self, kind: str, **filters: Any) -> List[Any]:
        records = []
        for data in self._scan(kind):
            if all(data.get(key) == value for key, value in filters.items()):
                records.append(RECORD_TYPES[kind](data))
        records.sort(key=lambda r: r.created_at)
        return records

    def _insert(self, kind: str, record: Any) -> Any:
        with self._locked(kind, record.id):
            if self._read(kind, record.id) is not None:
                raise CollaboratorError(f"{kind[:-1]} {record.id} already exists")
            self._write(kind, record.id, record.to_dict())
        return record

    def _replace(self, kind: str, record: Any) -> Any:
        with self._locked(kind, record.id):
            if self._read(kind, record.id) is None:
                raise NotFound(f"{kind[:-1]} {record.id} not found")
            self._write(kind, record.id, record.to_dict())
        return record

    # organizations

    def get_organization(self, organization_id: str) -> Organization:
        return self._get("organizations", organization_id)

    def find_organization_by_slug(self, slug: str) -> Optional[Organization]:
        matches = self._all("organizations", slug=slug)
        return matches[0] if matches else None

    def insert_organization(self, organization: Organization) -> Organization:
        return self._insert("organizations", organization)

    def update_organization(self, organization: Organization) -> Organization:
        return self._replace("organizations", organization)

    # users

    def get_user(self, user_id: str) -> User:
        return self._get("users", user_id)

    def list_users(self, organization_id: str) -> List[User]:
        return self._all("users", organization_id=organization_id)

    def insert_user(self, user: User) -> User:
        return self._insert("users", user)

    def update_user(self, user: User) -> User:
        return self._replace("users", user)

    # proposals

    def get_proposal(self, proposal_id: str) -> Proposal:
        return self._get("proposals", proposal_id)

    def list_proposals(self, organization_id: str) -> List[Proposal]:
        proposals = self._all("proposals", organization_id=organization_id)
        proposals.sort(key=lambda p: p.updated_at, reverse=True)
        return proposals

    def insert_proposal(self, proposal: Proposal) -> Proposal:
        return self._insert("proposals", proposal)

    def delete_proposal(self, proposal_id: str) -> None:
        with self._locked("proposals", proposal_id):
            self._delete("proposals", proposal_id)

    def update_proposal(
        self, proposal: Proposal, expected_version: int, review: Optional[Review] = None
    ) -> Proposal:
        """Write ``proposal`` only if the stored row is still at ``expected_version``.

        Returns the stored value with its version bumped. Raises
        InvalidTransition when another writer got there first. A ``review``
        is written under the same lock and only together with the proposal.
        """
        with self._locked("proposals", proposal.id):
            self._check_version(proposal.id, expected_version)
            stored = replace(proposal, version=expected_version + 1)
            if review is not None:
                self.insert_review(review)
            try:
                self._write("proposals", stored.id, stored.to_dict())
            except CollaboratorError:
                if review is not None:
                    self.delete_review(review.id)
                raise
        return stored

    def revert_proposal(
        self, previous: Proposal, current_version: int, review: Optional[Review] = None
    ) -> Proposal:
        """Put ``previous`` back over a write made at ``current_version``.

        Undoes an :meth:`update_proposal` whose follow-up step failed,
        including the review it stored.
        """
        with self._locked("proposals", previous.id):
            self._check_version(previous.id, current_version)
            self._write("proposals", previous.id, previous.to_dict())
            if review is not None:
                self.delete_review(review.id)
        return previous

    def _check_version(self, proposal_id: str, expected_version: int) -> None:
        current = self._read("proposals", proposal_id)
        if current is None:
            raise NotFound(f"proposal {proposal_id} not found")
        if int(current.get("version", 1)) != expected_version:
            raise InvalidTransition(
                f"Proposal {proposal_id} changed since it was read "
                f"(expected version {expected_version}, found {current.get('version')})"
            )

    # annotations

    def get_annotation(self, annotation_id: str) -> Annotation:
        return self._get("annotations", annotation_id)

    def list_annotations(self, proposal_id: str) -> List[Annotation]:
        return self._all("annotations", proposal_id=proposal_id)

    def insert_annotation(self, annotation: Annotation) -> Annotation:
        return self._insert("annotations", annotation)

    def update_annotation(self, annotation: Annotation) -> Annotation:
        return self._replace("annotations", annotation)

    def list_replies(self, annotation_id: str) -> List[AnnotationReply]:
        return self._all("annotation_replies", annotation_id=annotation_id)

    def insert_reply(self, reply: AnnotationReply) -> AnnotationReply:
        return self._insert("annotation_replies", reply)

    # reviews

    def list_reviews(self, proposal_id: str) -> List[Review]:
        return self._all("reviews", proposal_id=proposal_id)

    def insert_review(self, review: Review) -> Review:
        return self._insert("reviews", review)

    def delete_review(self, review_id: str) -> None:
        with self._locked("reviews", review_id):
            self._delete("reviews", review_id)


class YamlStore(Store):
    """One YAML file per record: ``<root>/<kind>/<id>.yaml``."""

    def __init__(self, root: Optional[Path] = None, lock_dir: Optional[Path] = None) -> None:
        if root is None:
            self.root = config.DATA_DIR
            self.lock_dir = Path(lock_dir) if lock_dir else config.LOCK_DIR
        else:
            self.root = Path(root)
            self.lock_dir = Path(lock_dir) if lock_dir else self.root / ".locks"

    def record_path(self, kind: str, record_id: str) -> Path:
        return self.root / kind / f"{record_id}.yaml"

    def _read(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        path = self.record_path(kind, record_id)
        try:
            data = load_yaml(path)
        except (OSError, yaml.YAMLError) as exc:
            raise CollaboratorError(f"Cannot read {path}: {exc}") from exc
        return data or None

    def _write(self, kind: str, record_id: str, data: Dict[str, Any]) -> None:
        path = self.record_path(kind, record_id)
        try:
            dump_yaml(data, path)
        except (OSError, yaml.YAMLError) as exc:
            raise CollaboratorError(f"Cannot write {path}: {exc}") from exc

    def _delete(self, kind: str, record_id: str) -> None:
        path = self.record_path(kind, record_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise CollaboratorError(f"Cannot delete {path}: {exc}") from exc

    def _scan(self, kind: str) -> List[Dict[str, Any]]:
        directory = self.root / kind
        try:
            ensure_dir(directory)
            return [data for data in (load_yaml(p) for p in sorted(directory.glob("*.yaml"))) if data]
        except (OSError, yaml.YAMLError) as exc:
            raise CollaboratorError(f"Cannot scan {directory}: {exc}") from exc

    @contextmanager
    def _locked(self, kind: str, record_id: str) -> Iterator[None]:
        try:
            with file_lock(self.lock_dir / kind / f"{record_id}.lock"):
                yield
        except OSError as exc:
            raise CollaboratorError(f"Cannot lock {kind}/{record_id}: {exc}") from exc


class MemoryStore(Store):
    """Process-local store, handy for tests and throwaway API instances."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Dict[str, Any]]] = {kind: {} for kind in RECORD_TYPES}
        self._lock = threading.RLock()

    def _read(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        data = self._records[kind].get(record_id)
        return yaml.safe_load(yaml.safe_dump(data)) if data is not None else None

    def _write(self, kind: str, record_id: str, data: Dict[str, Any]) -> None:
        # Round-trip through YAML so stored values never alias caller objects
        self._records[kind][record_id] = yaml.safe_load(yaml.safe_dump(data))

    def _delete(self, kind: str, record_id: str) -> None:
        self._records[kind].pop(record_id, None)

    def _scan(self, kind: str) -> List[Dict[str, Any]]:
        with self._lock:
            ids = list(self._records[kind])
        return [data for data in (self._read(kind, i) for i in ids) if data is not None]

    @contextmanager
    def _locked(self, kind: str, record_id: str) -> Iterator[None]:
        with self._lock:
            yield
