"""Application state for one visitor of the journal.

A ``CoconStore`` is built per request from the session (which remembers the
role and the selected event between requests) and a ``DocumentGateway``. It
owns the in-memory view of the access codes, the event list, the selected
event's logs and the bucket list, and it is the only place that decides who
may change what.

Local state only changes after the gateway confirms a write. Every write
also leaves its outcome in ``state.write_status`` keyed by
``"<collection>/<document id>"`` so a caller can offer a retry.
"""

import hmac
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError
from django.utils import timezone

from .constants import (
    BUCKET_LIST_COLLECTION,
    CONFIG_COLLECTION,
    EDITOR,
    EVENTS_COLLECTION,
    EVERGREEN_EVENT_ID,
    EVERGREEN_LOCKED_FIELDS,
    LOGS_COLLECTION,
    PARTNER,
    PHOTO_PATH_TEMPLATE,
    ROLE_SESSION_KEY,
    ROLES,
    SELECTED_EVENT_SESSION_KEY,
    SETTINGS_DOCUMENT_ID,
)
from .gateway import DocumentGateway
from .lifecycle import (
    evergreen_event_record,
    is_evergreen,
    sort_events,
    validate_event_dates,
)
from .models import DailyLog


logger = logging.getLogger(__name__)

SAVED = "saved"
FAILED = "failed"

LOG_STRING_FIELDS = ("prompt_for_partner", "prompt_for_editor")
LOG_LIST_FIELDS = ("editor_notes", "partner_notes")
LOG_ROLE_FIELDS = ("moods", "songs", "photos")
EVENT_EDITABLE_FIELDS = ("name", "start_date", "end_date")
OWN_LOG_FIELDS = {
    EDITOR: ("prompt_for_partner", "editor_notes"),
    PARTNER: ("prompt_for_editor", "partner_notes"),
}


class NoEventSelected(ValidationError):
    def __init__(self):
        super().__init__("Select an event first.")


def empty_log() -> dict:
    log = {name: "" for name in LOG_STRING_FIELDS}
    log.update({name: [] for name in LOG_LIST_FIELDS})
    log.update({name: {role: None for role in ROLES} for name in LOG_ROLE_FIELDS})
    return log


def normalize_log(current: Optional[dict], partial: dict) -> dict:
    """Overlay ``partial`` on ``current`` and fill every gap with its empty value.

    Strings become ``""``, note lists ``[]`` and each per-role slot ``None``
    so the local copy never has gaps. Per-role maps overlay slot by slot.
    """
    log = empty_log()
    for source in (current or {}, partial):
        for name in LOG_STRING_FIELDS:
            if name in source:
                log[name] = source[name] or ""
        for name in LOG_LIST_FIELDS:
            if name in source:
                log[name] = list(source[name] or [])
        for name in LOG_ROLE_FIELDS:
            slots = source.get(name) or {}
            for role in ROLES:
                if role in slots:
                    log[name][role] = slots[role] or None
    return log


def has_log_content(log: Optional[dict]) -> bool:
    if not log:
        return False
    if any(log.get(name) for name in LOG_STRING_FIELDS + LOG_LIST_FIELDS):
        return True
    return any(
        (log.get(name) or {}).get(role) for name in LOG_ROLE_FIELDS for role in ROLES
    )


def photo_path(event_id: str, day: date, role: str) -> str:
    return PHOTO_PATH_TEMPLATE.format(event_id=event_id, date=day.isoformat(), role=role)


@dataclass
class AppState:
    is_initialized: bool = False
    role: Optional[str] = None
    editor_code: str = ""
    partner_code: str = ""
    events: list = field(default_factory=list)
    selected_event_id: Optional[str] = None
    logs: dict = field(default_factory=dict)
    bucket_list: list = field(default_factory=list)
    write_status: dict = field(default_factory=dict)


class CoconStore:
    def __init__(self, session, gateway=None, today=None):
        self.session = session
        self.gateway = gateway or DocumentGateway()
        self.today = today or timezone.localdate()
        self.state = AppState()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def initialize(self) -> AppState:
        settings_doc = {}
        events = []
        try:
            settings_doc = (
                self.gateway.get_document(CONFIG_COLLECTION, SETTINGS_DOCUMENT_ID) or {}
            )
            events = self.gateway.list_documents(EVENTS_COLLECTION)
            if not any(event["id"] == EVERGREEN_EVENT_ID for event in events):
                evergreen = self._create_evergreen_event()
                if evergreen:
                    events.append(evergreen)
        except DatabaseError:
            # Fail open with empty settings and events.
            logger.exception("Failed to load settings and events")
            settings_doc, events = {}, []

        stored_role = self.session.get(ROLE_SESSION_KEY)
        self.state = AppState(
            is_initialized=True,
            role=stored_role if stored_role in ROLES else None,
            editor_code=settings_doc.get("editor_code") or "",
            partner_code=settings_doc.get("partner_code") or "",
            events=sort_events(events),
            write_status=self.state.write_status,
        )

        stored_event_id = self.session.get(SELECTED_EVENT_SESSION_KEY)
        if stored_event_id and self._find_event(stored_event_id, required=False):
            self.state.selected_event_id = stored_event_id
            self._load_logs()
        elif stored_event_id:
            self.session.pop(SELECTED_EVENT_SESSION_KEY, None)
        return self.state

    def _create_evergreen_event(self):
        record = evergreen_event_record()
        if not self._write(EVENTS_COLLECTION, record["id"], record, merge=False):
            return None
        logger.info("Created the evergreen event %s", record["id"])
        return record

    def _load_logs(self):
        self.state.logs = {}
        try:
            records = self.gateway.list_documents(
                LOGS_COLLECTION, {"event_id": self.state.selected_event_id}
            )
        except DatabaseError:
            logger.exception("Failed to load logs for %s", self.state.selected_event_id)
            return
        self.state.logs = {record["date"]: record for record in records}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, collection, doc_id, record, merge=True) -> bool:
        ok = self.gateway.set_document(collection, doc_id, record, merge=merge)
        self.state.write_status[f"{collection}/{doc_id}"] = SAVED if ok else FAILED
        return ok

    def _delete(self, refs) -> bool:
        refs = list(refs)
        ok = self.gateway.batch_delete(refs)
        for collection, doc_id in refs:
            self.state.write_status[f"{collection}/{doc_id}"] = SAVED if ok else FAILED
        return ok

    def _require_login(self):
        if self.state.role not in ROLES:
            raise PermissionDenied("Enter your code first.")
        return self.state.role

    def _require_editor(self, action):
        if self.state.role != EDITOR:
            raise PermissionDenied(f"Only the editor can {action}.")

    def _find_event(self, event_id, required=True):
        for event in self.state.events:
            if event["id"] == event_id:
                return event
        if required:
            raise ValidationError(f"Unknown event: {event_id}")
        return None

    def _require_selected_event(self):
        event = self.selected_event()
        if event is None:
            raise NoEventSelected()
        return event

    def _refresh_log(self, day, fallback=None):
        doc_id = DailyLog.document_id(self.state.selected_event_id, day)
        try:
            record = self.gateway.get_document(LOGS_COLLECTION, doc_id)
        except DatabaseError:
            logger.exception("Failed to reload log %s", doc_id)
            if fallback is not None:
                self.state.logs[day] = fallback
            return self.state.logs.get(day)
        if record is None:
            self.state.logs.pop(day, None)
        else:
            self.state.logs[day] = record
        return record

    def failed_writes(self):
        return sorted(
            target for target, status in self.state.write_status.items()
            if status == FAILED
        )

    # ------------------------------------------------------------------
    # Session role
    # ------------------------------------------------------------------

    def codes_configured(self) -> bool:
        return bool(self.state.editor_code or self.state.partner_code)

    def attempt_login_with_code(self, code) -> bool:
        if not self.codes_configured() or not isinstance(code, str):
            return False

        entered = code.encode()
        for role, configured in (
            (EDITOR, self.state.editor_code),
            (PARTNER, self.state.partner_code),
        ):
            if configured and hmac.compare_digest(entered, configured.encode()):
                self.state.role = role
                self.session[ROLE_SESSION_KEY] = role
                logger.info("Signed in as %s", role)
                return True
        return False

    def logout(self):
        self.state.role = None
        self.session.pop(ROLE_SESSION_KEY, None)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def selected_event(self):
        if not self.state.selected_event_id:
            return None
        return self._find_event(self.state.selected_event_id, required=False)

    def select_event(self, event_id):
        if event_id is not None:
            self._find_event(event_id)
        self.state.selected_event_id = event_id
        self.state.logs = {}
        if event_id is None:
            self.session.pop(SELECTED_EVENT_SESSION_KEY, None)
            return
        self.session[SELECTED_EVENT_SESSION_KEY] = event_id
        self._load_logs()

    def add_event(self, data):
        self._require_editor("create events")
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("An event needs a name.")
        start_date, end_date = data.get("start_date"), data.get("end_date")
        validate_event_dates(start_date, end_date)

        event_id = data.get("id") or uuid.uuid4().hex
        if event_id == EVERGREEN_EVENT_ID or self._find_event(event_id, required=False):
            raise ValidationError(f"An event with id {event_id} already exists.")
        record = {
            "id": event_id,
            "name": name,
            "start_date": start_date,
            "end_date": end_date,
            "is_evergreen": False,
            "created_by": self.state.role,
        }
        if not self._write(EVENTS_COLLECTION, event_id, record, merge=False):
            return None
        self.state.events = sort_events(self.state.events + [record])
        return event_id

    def update_event(self, event_id, partial) -> bool:
        self._require_editor("change events")
        event = self._find_event(event_id)
        if is_evergreen(event):
            locked = [name for name in EVERGREEN_LOCKED_FIELDS if name in partial]
            if locked:
                raise ValidationError(
                    "The dates of the evergreen event cannot change: "
                    + ", ".join(locked)
                )

        changes = {
            name: partial[name] for name in EVENT_EDITABLE_FIELDS if name in partial
        }
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise ValidationError("An event needs a name.")
        updated = {**event, **changes}
        if not is_evergreen(updated):
            validate_event_dates(updated["start_date"], updated["end_date"])

        if not self._write(EVENTS_COLLECTION, event_id, changes, merge=True):
            return False
        self.state.events = sort_events(
            [updated if item["id"] == event_id else item for item in self.state.events]
        )
        return True

    def delete_event(self, event_id) -> bool:
        self._require_editor("delete events")
        event = self._find_event(event_id)
        if is_evergreen(event):
            raise ValidationError("The evergreen event cannot be deleted.")

        try:
            logs = self.gateway.list_documents(LOGS_COLLECTION, {"event_id": event_id})
        except DatabaseError:
            logger.exception("Failed to list logs of event %s", event_id)
            return False
        refs = [(EVENTS_COLLECTION, event_id)]
        refs.extend((LOGS_COLLECTION, log["id"]) for log in logs)
        if not self._delete(refs):
            return False

        self._delete_photos(logs)
        self.state.events = [item for item in self.state.events if item["id"] != event_id]
        if self.state.selected_event_id == event_id:
            self.select_event(None)
        logger.info("Deleted event %s with %d logs", event_id, len(logs))
        return True

    def reset_all_app_data(self) -> bool:
        self._require_editor("reset the app")
        try:
            logs = self.gateway.list_documents(LOGS_COLLECTION)
            events = self.gateway.list_documents(EVENTS_COLLECTION)
        except DatabaseError:
            logger.exception("Failed to list documents for a reset")
            return False
        refs = [(LOGS_COLLECTION, log["id"]) for log in logs]
        refs.extend(
            (EVENTS_COLLECTION, event["id"]) for event in events if not is_evergreen(event)
        )
        if not self._delete(refs):
            return False

        self._delete_photos(logs)
        evergreen = next((event for event in events if is_evergreen(event)), None)
        if evergreen is None:
            evergreen = self._create_evergreen_event()
        self.state.events = [evergreen] if evergreen else []
        self.select_event(None)
        logger.warning("Reset all app data: %d logs, %d events", len(logs), len(refs) - len(logs))
        return True

    # ------------------------------------------------------------------
    # Daily logs
    # ------------------------------------------------------------------

    def get_log(self, day):
        if self.selected_event() is None:
            return None
        return self.state.logs.get(day)

    def _check_own_side(self, role, partial):
        other = PARTNER if role == EDITOR else EDITOR
        foreign = [
            name
            for name in LOG_STRING_FIELDS + LOG_LIST_FIELDS
            if name in partial and name not in OWN_LOG_FIELDS[role]
        ]
        foreign.extend(
            f"{name}.{other}"
            for name in LOG_ROLE_FIELDS
            if other in (partial.get(name) or {})
        )
        if foreign:
            raise PermissionDenied(
                "You can only change your own side of the day: " + ", ".join(foreign)
            )

    def upsert_log(self, day, partial) -> bool:
        role = self._require_login()
        self._check_own_side(role, partial)
        event = self._require_selected_event()
        record = normalize_log(self.state.logs.get(day), partial)
        record.update({"event_id": event["id"], "date": day})
        doc_id = DailyLog.document_id(event["id"], day)

        # Only what ``partial`` names is written; the rest stays as stored
        # (or takes its empty default on a new log).
        document = {"event_id": event["id"], "date": day}
        for name in LOG_STRING_FIELDS + LOG_LIST_FIELDS:
            if name in partial:
                document[name] = record[name]
        for name in LOG_ROLE_FIELDS:
            slots = partial.get(name) or {}
            sent = {slot: record[name][slot] for slot in ROLES if slot in slots}
            if sent:
                document[name] = sent
        if not self._write(LOGS_COLLECTION, doc_id, document, merge=True):
            return False
        current = self.state.logs.get(day) or {}
        self._refresh_log(
            day,
            fallback={
                "id": doc_id,
                **record,
                "note_items": current.get("note_items", []),
            },
        )
        return True

    def delete_log(self, day) -> bool:
        self._require_editor("delete a whole day")
        event = self._require_selected_event()
        log = self.state.logs.get(day)
        doc_id = DailyLog.document_id(event["id"], day)
        if not self._delete([(LOGS_COLLECTION, doc_id)]):
            return False
        self._delete_photos([log] if log else [])
        self.state.logs.pop(day, None)
        return True

    def append_note(self, day, text):
        role = self._require_login()
        event = self._require_selected_event()
        text = (text or "").strip()
        if not text:
            raise ValidationError("A note cannot be empty.")

        note = self.gateway.append_note(event["id"], day, role, text)
        target = f"{LOGS_COLLECTION}/{DailyLog.document_id(event['id'], day)}"
        self.state.write_status[target] = SAVED if note else FAILED
        if note:
            self._refresh_log(day)
        return note

    def delete_note(self, day, note_id) -> bool:
        role = self._require_login()
        self._require_selected_event()
        log = self.state.logs.get(day) or {}
        note = next(
            (item for item in log.get("note_items", []) if item["id"] == note_id), None
        )
        if note is None:
            raise ValidationError("That note does not exist.")
        if role == PARTNER and note["role"] != PARTNER:
            raise PermissionDenied("You can only delete your own notes.")

        ok = self.gateway.delete_note(note_id)
        self.state.write_status[f"{LOGS_COLLECTION}/{log['id']}"] = SAVED if ok else FAILED
        if ok:
            self._refresh_log(day)
        return ok

    def upload_photo(self, day, content: bytes, hint=""):
        role = self._require_login()
        event = self._require_selected_event()
        path = photo_path(event["id"], day, role)
        url = self.gateway.upload_blob(path, content)
        if url is None:
            self.state.write_status[f"blob/{path}"] = FAILED
            return None
        self.state.write_status[f"blob/{path}"] = SAVED
        photo = {"url": url, "hint": (hint or "").strip()}
        if not self.upsert_log(day, {"photos": {role: photo}}):
            return None
        return photo

    def delete_photo(self, day) -> bool:
        role = self._require_login()
        event = self._require_selected_event()
        path = photo_path(event["id"], day, role)
        ok = self.gateway.delete_blob(path)
        self.state.write_status[f"blob/{path}"] = SAVED if ok else FAILED
        if not ok:
            return False
        return self.upsert_log(day, {"photos": {role: None}})

    def _delete_photos(self, logs):
        for log in logs:
            photos = log.get("photos") or {}
            for role in ROLES:
                if photos.get(role):
                    self.gateway.delete_blob(photo_path(log["event_id"], log["date"], role))

    def days_with_entries(self):
        return sorted(day for day, log in self.state.logs.items() if has_log_content(log))

    # ------------------------------------------------------------------
    # Bucket list
    # ------------------------------------------------------------------

    def load_bucket_list(self):
        try:
            self.state.bucket_list = self.gateway.list_documents(BUCKET_LIST_COLLECTION)
        except DatabaseError:
            logger.exception("Failed to load the bucket list")
            self.state.bucket_list = []
        return self.state.bucket_list

    def _find_bucket_item(self, item_id):
        for item in self.state.bucket_list:
            if item["id"] == item_id:
                return item
        raise ValidationError(f"Unknown bucket list item: {item_id}")

    def add_bucket_list_item(self, text):
        role = self._require_login()
        text = (text or "").strip()
        if not text:
            raise ValidationError("A bucket list item needs some text.")
        item_id = uuid.uuid4().hex
        record = {"text": text, "completed": False, "created_by": role}
        if not self._write(BUCKET_LIST_COLLECTION, item_id, record, merge=False):
            return None
        try:
            item = self.gateway.get_document(BUCKET_LIST_COLLECTION, item_id)
        except DatabaseError:
            logger.exception("Failed to reload bucket list item %s", item_id)
            item = None
        item = item or {"id": item_id, **record}
        self.state.bucket_list.append(item)
        return item

    def toggle_bucket_list_item(self, item_id, completed) -> bool:
        self._require_login()
        item = self._find_bucket_item(item_id)
        if not self._write(
            BUCKET_LIST_COLLECTION, item_id, {"completed": bool(completed)}, merge=True
        ):
            return False
        item["completed"] = bool(completed)
        return True

    def delete_bucket_list_item(self, item_id) -> bool:
        self._require_editor("delete bucket list items")
        self._find_bucket_item(item_id)
        if not self._delete([(BUCKET_LIST_COLLECTION, item_id)]):
            return False
        self.state.bucket_list = [
            item for item in self.state.bucket_list if item["id"] != item_id
        ]
        return True
