"""
Paginated list view and edit form state for one record kind.

Mirrors how a tab in the examination screen behaves: it loads a page on
mount, debounces search input, refreshes after every successful mutation,
keeps the last good page when a reload fails, and keeps the form values
when a submit fails. Repository calls run in a worker thread so the event
loop is only suspended on them.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional

from eyeexam.config import settings
from eyeexam.errors import ExaminationError, NotFoundError, TransportError, ValidationError
from eyeexam.models.api import RecordPage
from eyeexam.services.kinds import RecordKind
from eyeexam.services.repository import SubRecordRepository

logger = logging.getLogger(__name__)

ViewState = Literal["idle", "loading", "ready", "error"]


@dataclass
class Notice:
    level: Literal["success", "error", "info"]
    message: str


@dataclass
class RecordForm:
    """Flat edit-form state. ``record_id`` is None for an add form."""
    kind: RecordKind
    values: Dict[str, Any] = field(default_factory=dict)
    record_id: Any = None
    errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def blank(cls, kind: RecordKind) -> "RecordForm":
        return cls(kind=kind, values=kind.decode({}))

    @classmethod
    def from_record(cls, kind: RecordKind, record: Mapping[str, Any]) -> "RecordForm":
        return cls(kind=kind, values=kind.decode(record), record_id=record.get("id"))

    def set(self, name: str, value: Any) -> None:
        self.values[name] = value
        self.errors.pop(name, None)

    def validate(self) -> bool:
        self.errors = self.kind.validate(self.values)
        return not self.errors


class RecordListView:
    def __init__(self, repository: SubRecordRepository, visit_id: str, per_page: Optional[int] = None, debounce_ms: Optional[int] = None):
        self.repository = repository
        self.visit_id = visit_id
        self.per_page = per_page or settings.default_per_page
        self.debounce = (settings.search_debounce_ms if debounce_ms is None else debounce_ms) / 1000.0
        self.page = 1
        self.search_term = ""
        self.state: ViewState = "idle"
        self.current: Optional[RecordPage] = None
        self.error: Optional[str] = None
        self.notices: List[Notice] = []
        self.busy = False
        self._search_task: Optional[asyncio.Task] = None

    @property
    def items(self) -> List[Dict[str, Any]]:
        return self.current.items if self.current else []

    def _notify(self, level, message):
        self.notices.append(Notice(level, message))

    async def load(self) -> Optional[RecordPage]:
        if self.current is None:
            self.state = "loading"
        try:
            page = await asyncio.to_thread(
                self.repository.list, self.visit_id, self.page, self.per_page, self.search_term or None
            )
        except ExaminationError as e:
            self.error = str(e)
            self._notify("error", f"Failed to load {self.repository.kind.label.lower()} records")
            # keep the last good page on screen; only a failed first load shows the error state
            self.state = "ready" if self.current is not None else "error"
            return None
        self.current = page
        self.page = page.page
        self.error = None
        self.state = "ready"
        return page

    async def go_to(self, page: int) -> Optional[RecordPage]:
        self.page = max(1, int(page))
        return await self.load()

    def search(self, term: str) -> asyncio.Task:
        """Schedule a reload for ``term`` after the debounce quiet period."""
        self.search_term = term
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()
        self._search_task = asyncio.ensure_future(self._debounced_search())
        return self._search_task

    async def _debounced_search(self):
        await asyncio.sleep(self.debounce)
        self.page = 1
        return await self.load()

    async def _mutate(self, action: str, call, *args) -> bool:
        if self.busy:
            logger.info(f"{action} ignored: another {self.repository.kind.name} request is in flight")
            return False
        self.busy = True
        try:
            await asyncio.to_thread(call, *args)
        except NotFoundError as e:
            self._notify("error", str(e))
            await self.load()
            return False
        except TransportError as e:
            self._notify("error", f"Failed to {action} {self.repository.kind.label.lower()}: {e}")
            return False
        finally:
            self.busy = False
        self._notify("success", f"{self.repository.kind.label} {action}d successfully")
        await self.load()
        return True

    async def submit(self, form: RecordForm) -> bool:
        """Create or update from ``form``; the form is left untouched on failure."""
        return await self._save(form, form.record_id)

    async def create(self, form: RecordForm) -> bool:
        return await self._save(form, None)

    async def update(self, record_id, form: RecordForm) -> bool:
        return await self._save(form, record_id)

    async def _save(self, form: RecordForm, record_id) -> bool:
        try:
            if record_id is None:
                payload = dict(form.values, visit_id=self.visit_id)
                return await self._mutate("create", self.repository.create, payload)
            return await self._mutate("update", self.repository.update, record_id, dict(form.values))
        except ValidationError as e:
            form.errors = dict(e.errors)
            self._notify("error", "Please fill all required fields")
            return False

    async def delete(self, record_id) -> bool:
        return await self._mutate("delete", self.repository.delete, record_id)
