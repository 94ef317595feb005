from django.contrib import admin

from .models import AppSettings, BucketListItem, DailyLog, Event, LogNote


@admin.register(AppSettings)
class AppSettingsAdmin(admin.ModelAdmin):
    list_display = ("id", "updated_at")


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "start_date", "end_date", "is_evergreen")
    search_fields = ("name",)
    list_filter = ("is_evergreen",)


class LogNoteInline(admin.TabularInline):
    model = LogNote
    extra = 0


@admin.register(DailyLog)
class DailyLogAdmin(admin.ModelAdmin):
    list_display = ("id", "event", "date", "updated_at")
    list_filter = ("event",)
    inlines = [LogNoteInline]


@admin.register(BucketListItem)
class BucketListItemAdmin(admin.ModelAdmin):
    list_display = ("id", "text", "completed", "created_by", "created_at")
    list_filter = ("completed", "created_by")
