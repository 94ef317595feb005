import django.db.models.deletion
from django.db import migrations, models

import journal.models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AppSettings",
            fields=[
                (
                    "id",
                    models.CharField(
                        default="appSettings",
                        editable=False,
                        max_length=40,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("editor_code", models.CharField(blank=True, max_length=200)),
                ("partner_code", models.CharField(blank=True, max_length=200)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "App settings",
                "verbose_name_plural": "App settings",
            },
        ),
        migrations.CreateModel(
            name="BucketListItem",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=journal.models._new_document_id,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("text", models.CharField(max_length=300)),
                ("completed", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_by",
                    models.CharField(
                        choices=[("editor", "Editor"), ("partner", "Partner")],
                        max_length=16,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=journal.models._new_document_id,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=100)),
                ("start_date", models.DateField(blank=True, null=True)),
                ("end_date", models.DateField(blank=True, null=True)),
                ("is_evergreen", models.BooleanField(default=False)),
                ("created_by", models.CharField(blank=True, max_length=16)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("is_evergreen", True),
                            ("start_date__lte", models.F("end_date")),
                            _connector="OR",
                        ),
                        name="dated_event_start_before_end",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DailyLog",
            fields=[
                (
                    "id",
                    models.CharField(
                        editable=False,
                        max_length=96,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("date", models.DateField()),
                ("prompt_for_partner", models.TextField(blank=True, default="")),
                ("prompt_for_editor", models.TextField(blank=True, default="")),
                (
                    "moods",
                    models.JSONField(
                        blank=True, default=journal.models._empty_role_slots
                    ),
                ),
                (
                    "songs",
                    models.JSONField(
                        blank=True, default=journal.models._empty_role_slots
                    ),
                ),
                (
                    "photos",
                    models.JSONField(
                        blank=True, default=journal.models._empty_role_slots
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="daily_logs",
                        to="journal.event",
                    ),
                ),
            ],
            options={
                "ordering": ["date"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("event", "date"), name="unique_log_per_event_day"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="LogNote",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[("editor", "Editor"), ("partner", "Partner")],
                        max_length=16,
                    ),
                ),
                ("text", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "log",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notes",
                        to="journal.dailylog",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
    ]
