"""
Visit-scoped sub-record repository.

One instance per record kind, all sharing the same contract:
list / create / update / delete against ``<kind.path>``. Mutations are
validated against the kind's required-field rules before any request is
sent. There is no caching; callers refresh with ``list`` after mutating.
"""
import logging
from typing import Any, Dict, Mapping, Optional

from eyeexam.config import settings
from eyeexam.errors import NotFoundError, ValidationError
from eyeexam.models.api import RecordPage
from eyeexam.services.emr_client import EmrClient
from eyeexam.services.envelopes import unwrap_record
from eyeexam.services.kinds import KINDS, RecordKind

logger = logging.getLogger(__name__)


def _id_key(value: Any):
    # numeric ids compare numerically, anything else lexically after them
    text = "" if value is None else str(value)
    return (0, int(text), "") if text.isdigit() else (1, 0, text)


def recency_key(record: Mapping[str, Any]):
    """Sort key for "most recent": creation time, then id."""
    return (str(record.get("created_at") or ""), _id_key(record.get("id")))


class SubRecordRepository:
    def __init__(self, kind: RecordKind, client: EmrClient):
        self.kind = kind
        self.client = client

    def __repr__(self):
        return f"SubRecordRepository({self.kind.name})"

    def _record_path(self, record_id) -> str:
        return f"{self.kind.path}/{record_id}"

    def list(self, visit_id: str, page: int = 1, per_page: Optional[int] = None, search: Optional[str] = None) -> RecordPage:
        per_page = per_page or settings.default_per_page
        page = max(1, int(page or 1))
        logger.info(f"list {self.kind.name} visit={visit_id} page={page} per_page={per_page} search={search!r}")
        body = self.client.get(
            self.kind.path,
            params={"visit_id": visit_id, "page": page, "per_page": per_page, "search": search},
        )
        return self.kind.unwrap_page(body, page, per_page)

    def get(self, record_id) -> Dict[str, Any]:
        try:
            return unwrap_record(self.client.get(self._record_path(record_id)))
        except NotFoundError:
            raise NotFoundError(self.kind.name, record_id) from None

    def create(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate the flat form payload and POST it; ``visit_id`` is required."""
        errors = self.kind.validate(payload)
        visit_id = payload.get("visit_id")
        if visit_id is None or str(visit_id).strip() == "":
            errors["visit_id"] = "Missing visit ID"
        if errors:
            logger.info(f"create {self.kind.name} rejected: {sorted(errors)}")
            raise ValidationError(errors, kind=self.kind.name)

        body = dict(self.kind.encode(payload))
        body["visit_id"] = visit_id
        logger.info(f"create {self.kind.name} visit={visit_id}")
        return unwrap_record(self.client.post(self.kind.path, json=body))

    def update(self, record_id, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """PATCH the keys in ``payload``.

        Grouped fields the payload only partly covers are completed from the
        stored record first, so untouched members keep their values.
        """
        missing = [k for k in self.kind.group_keys(payload) if k not in payload]
        if missing:
            current = self.kind.decode(self.get(record_id))
            payload = dict({k: current.get(k, "") for k in missing}, **payload)
        errors = self.kind.validate(payload, partial=True)
        if errors:
            raise ValidationError(errors, kind=self.kind.name)
        body = self.kind.encode(payload, partial=True)
        logger.info(f"update {self.kind.name} id={record_id} fields={sorted(body)}")
        try:
            response = self.client.patch(self._record_path(record_id), json=body)
        except NotFoundError:
            raise NotFoundError(self.kind.name, record_id) from None
        if response is None:
            return {"id": record_id, **body}
        return unwrap_record(response)

    def delete(self, record_id) -> None:
        logger.info(f"delete {self.kind.name} id={record_id}")
        try:
            self.client.delete(self._record_path(record_id))
        except NotFoundError:
            raise NotFoundError(self.kind.name, record_id) from None

    def latest(self, visit_id: str) -> Optional[Dict[str, Any]]:
        """Most recent record of this kind for the visit, or None.

        The backend's list order is not guaranteed, so both the first and the
        last page are read and the newest record across them wins.
        """
        first = self.list(visit_id, page=1)
        items = list(first.items)
        if first.last_page > 1:
            items.extend(self.list(visit_id, page=first.last_page, per_page=first.per_page).items)
        if not items:
            return None
        return max(items, key=recency_key)


def build_repositories(client: EmrClient) -> Dict[str, SubRecordRepository]:
    return {name: SubRecordRepository(kind, client) for name, kind in KINDS.items()}
