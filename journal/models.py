import uuid

from django.db import models

from .constants import EDITOR, PARTNER, SETTINGS_DOCUMENT_ID


ROLE_CHOICES = [
    (EDITOR, "Editor"),
    (PARTNER, "Partner"),
]


def _new_document_id() -> str:
    return uuid.uuid4().hex


def _empty_role_slots():
    return {EDITOR: None, PARTNER: None}


class AppSettings(models.Model):
    id = models.CharField(
        primary_key=True, max_length=40, default=SETTINGS_DOCUMENT_ID, editable=False
    )
    editor_code = models.CharField(max_length=200, blank=True)
    partner_code = models.CharField(max_length=200, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "App settings"
        verbose_name_plural = "App settings"

    def __str__(self) -> str:
        return "Access codes"


class Event(models.Model):
    id = models.CharField(primary_key=True, max_length=64, default=_new_document_id)
    name = models.CharField(max_length=100)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    is_evergreen = models.BooleanField(default=False)
    created_by = models.CharField(max_length=16, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(is_evergreen=True)
                | models.Q(start_date__lte=models.F("end_date")),
                name="dated_event_start_before_end",
            ),
        ]

    def __str__(self) -> str:
        if self.is_evergreen:
            return f"{self.name} (evergreen)"
        return f"{self.name}: {self.start_date} to {self.end_date}"


class DailyLog(models.Model):
    id = models.CharField(primary_key=True, max_length=96, editable=False)
    event = models.ForeignKey(
        Event, on_delete=models.CASCADE, related_name="daily_logs"
    )
    date = models.DateField()
    prompt_for_partner = models.TextField(blank=True, default="")
    prompt_for_editor = models.TextField(blank=True, default="")
    moods = models.JSONField(blank=True, default=_empty_role_slots)
    songs = models.JSONField(blank=True, default=_empty_role_slots)
    photos = models.JSONField(blank=True, default=_empty_role_slots)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "date"], name="unique_log_per_event_day"
            ),
        ]

    def __str__(self) -> str:
        return f"Log {self.id}"

    @staticmethod
    def document_id(event_id: str, day) -> str:
        return f"{event_id}_{day.isoformat()}"

    def save(self, *args, **kwargs):
        if not self.id:
            self.id = self.document_id(self.event_id, self.date)
        super().save(*args, **kwargs)

    def notes_for(self, role):
        return [note.text for note in self.notes.all() if note.role == role]


class LogNote(models.Model):
    log = models.ForeignKey(DailyLog, on_delete=models.CASCADE, related_name="notes")
    role = models.CharField(max_length=16, choices=ROLE_CHOICES)
    text = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.get_role_display()} note on {self.log_id}"


class BucketListItem(models.Model):
    id = models.CharField(primary_key=True, max_length=64, default=_new_document_id)
    text = models.CharField(max_length=300)
    completed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.CharField(max_length=16, choices=ROLE_CHOICES)

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        state = "done" if self.completed else "to do"
        return f"{self.text} ({state})"
