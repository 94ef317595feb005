"""Document-style access to the journal tables and the photo blob store.

Callers speak in collections and document ids (``events/<id>``,
``dailyLogs/<event_id>_<date>``) and plain dict records; this module maps
them onto the ORM. Writes never raise on database failures: they are logged
and reported as ``False`` so the caller can keep its own state untouched.
"""

import io
import logging

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import DatabaseError, transaction

from .constants import (
    BUCKET_LIST_COLLECTION,
    CONFIG_COLLECTION,
    EDITOR,
    EVENTS_COLLECTION,
    LOGS_COLLECTION,
    PARTNER,
    ROLES,
)
from .models import AppSettings, BucketListItem, DailyLog, Event, LogNote


logger = logging.getLogger(__name__)

ROLE_MAP_FIELDS = ("moods", "songs", "photos")
NOTE_FIELDS = {f"{role}_notes": role for role in ROLES}


class _Collection:
    model = None
    fields = ()

    def queryset(self):
        return self.model.objects.all()

    def new_instance(self, doc_id, record):
        return self.model(pk=doc_id)

    def to_record(self, instance) -> dict:
        record = {"id": instance.pk}
        for field in self.fields:
            record[field] = getattr(instance, field)
        return record

    def apply(self, instance, record, merge):
        for field in self.fields:
            if field in record:
                setattr(instance, field, record[field])
            elif not merge:
                setattr(instance, field, self.model._meta.get_field(field).get_default())
        instance.save()


class _SettingsCollection(_Collection):
    model = AppSettings
    fields = ("editor_code", "partner_code")


class _EventCollection(_Collection):
    model = Event
    fields = ("name", "start_date", "end_date", "is_evergreen", "created_by")


class _BucketListCollection(_Collection):
    model = BucketListItem
    fields = ("text", "completed", "created_by")

    def to_record(self, instance) -> dict:
        record = super().to_record(instance)
        record["created_at"] = instance.created_at
        return record


class _LogCollection(_Collection):
    model = DailyLog
    fields = ("prompt_for_partner", "prompt_for_editor")

    def queryset(self):
        return DailyLog.objects.prefetch_related("notes")

    def new_instance(self, doc_id, record):
        event_id = record.get("event_id")
        day = record.get("date")
        if not event_id or day is None:
            raise ValueError("A new daily log needs both event_id and date.")
        if doc_id != DailyLog.document_id(event_id, day):
            raise ValueError(f"Log id {doc_id!r} does not match its event and date.")
        return DailyLog(id=doc_id, event_id=event_id, date=day)

    def to_record(self, instance) -> dict:
        notes = list(instance.notes.all())
        record = {
            "id": instance.pk,
            "event_id": instance.event_id,
            "date": instance.date,
            "prompt_for_partner": instance.prompt_for_partner or "",
            "prompt_for_editor": instance.prompt_for_editor or "",
        }
        for field in ROLE_MAP_FIELDS:
            slots = getattr(instance, field) or {}
            record[field] = {role: slots.get(role) for role in ROLES}
        for field, role in NOTE_FIELDS.items():
            record[field] = [note.text for note in notes if note.role == role]
        record["note_items"] = [
            {"id": note.pk, "role": note.role, "text": note.text} for note in notes
        ]
        return record

    def apply(self, instance, record, merge):
        for field in ROLE_MAP_FIELDS:
            current = dict(getattr(instance, field) or {}) if merge else {}
            current.update(record.get(field) or {})
            setattr(instance, field, {role: current.get(role) for role in ROLES})
        super().apply(instance, record, merge)

        for field, role in NOTE_FIELDS.items():
            if field not in record and merge:
                continue
            instance.notes.filter(role=role).delete()
            LogNote.objects.bulk_create(
                LogNote(log=instance, role=role, text=text)
                for text in record.get(field) or []
            )


COLLECTIONS = {
    CONFIG_COLLECTION: _SettingsCollection(),
    EVENTS_COLLECTION: _EventCollection(),
    LOGS_COLLECTION: _LogCollection(),
    BUCKET_LIST_COLLECTION: _BucketListCollection(),
}


def _collection(name):
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise KeyError(f"Unknown collection: {name}") from None


class DocumentGateway:
    def get_document(self, collection, doc_id):
        adapter = _collection(collection)
        instance = adapter.queryset().filter(pk=doc_id).first()
        if instance is None:
            return None
        return adapter.to_record(instance)

    def list_documents(self, collection, filters=None):
        adapter = _collection(collection)
        queryset = adapter.queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return [adapter.to_record(instance) for instance in queryset]

    def set_document(self, collection, doc_id, record, merge=True) -> bool:
        adapter = _collection(collection)
        try:
            with transaction.atomic():
                instance = adapter.queryset().filter(pk=doc_id).first()
                if instance is None:
                    instance = adapter.new_instance(doc_id, record)
                adapter.apply(instance, record, merge)
        except DatabaseError:
            logger.exception("Failed to save %s/%s", collection, doc_id)
            return False
        logger.debug("Saved %s/%s (merge=%s)", collection, doc_id, merge)
        return True

    def delete_document(self, collection, doc_id) -> bool:
        return self.batch_delete([(collection, doc_id)])

    def batch_delete(self, refs) -> bool:
        refs = list(refs)
        try:
            with transaction.atomic():
                for collection, doc_id in refs:
                    _collection(collection).model.objects.filter(pk=doc_id).delete()
        except DatabaseError:
            logger.exception("Batch delete of %d documents failed", len(refs))
            return False
        logger.info("Deleted %d documents", len(refs))
        return True

    def append_note(self, event_id, day, role, text):
        """Add one note to a day's log, creating the log when needed."""
        if role not in (EDITOR, PARTNER):
            raise ValueError(f"Unknown role: {role}")
        try:
            with transaction.atomic():
                log, _created = DailyLog.objects.get_or_create(
                    event_id=event_id,
                    date=day,
                    defaults={"id": DailyLog.document_id(event_id, day)},
                )
                note = LogNote.objects.create(log=log, role=role, text=text)
        except DatabaseError:
            logger.exception("Failed to add a %s note to %s on %s", role, event_id, day)
            return None
        return {"id": note.pk, "role": note.role, "text": note.text}

    def delete_note(self, note_id) -> bool:
        try:
            with transaction.atomic():
                LogNote.objects.filter(pk=note_id).delete()
        except DatabaseError:
            logger.exception("Failed to delete note %s", note_id)
            return False
        return True

    def upload_blob(self, path, content: bytes):
        try:
            if settings.USE_CLOUDINARY:
                _configure_cloudinary()
                result = cloudinary.uploader.upload(
                    io.BytesIO(content),
                    public_id=path,
                    overwrite=True,
                    invalidate=True,
                    resource_type="image",
                )
                return result["secure_url"]

            if default_storage.exists(path):
                default_storage.delete(path)
            name = default_storage.save(path, ContentFile(content))
            return default_storage.url(name)
        except (CloudinaryError, OSError, KeyError):
            logger.exception("Failed to upload blob %s", path)
            return None

    def delete_blob(self, path) -> bool:
        try:
            if settings.USE_CLOUDINARY:
                _configure_cloudinary()
                cloudinary.uploader.destroy(path, invalidate=True, resource_type="image")
            elif default_storage.exists(path):
                default_storage.delete(path)
        except (CloudinaryError, OSError):
            logger.exception("Failed to delete blob %s", path)
            return False
        return True


def _configure_cloudinary():
    credentials = settings.CLOUDINARY_STORAGE
    cloudinary.config(
        cloud_name=credentials["CLOUD_NAME"],
        api_key=credentials["API_KEY"],
        api_secret=credentials["API_SECRET"],
        secure=True,
    )
