"""JSON endpoints for access, events, daily logs, AI helpers and the bucket list."""

from datetime import datetime

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import JsonResponse
from django.views import View

from .constants import (
    CODES_MISSING_MESSAGE,
    DATE_FORMAT,
    LOGIN_MISMATCH_MESSAGE,
    ROLES,
)
from .editor import day_payload, save_day
from .forms import (
    AccessCodeForm,
    BucketItemForm,
    BucketToggleForm,
    DayLogForm,
    DeleteNoteForm,
    EventForm,
    EventUpdateForm,
    NoteForm,
    PhotoForm,
    SelectEventForm,
    SongLinkForm,
    SuggestRepliesForm,
)
from .lifecycle import default_day_for_event, describe_event, is_date_in_event
from .services import (
    AIHelperError,
    SongLookupError,
    extract_song_details,
    generate_suggested_replies,
)
from .store import CoconStore


WRITE_FAILED_MESSAGE = "Could not save your changes. Please try again."


def _build_store(request):
    store = CoconStore(request.session)
    store.initialize()
    return store


def _form_errors(form):
    return JsonResponse({"errors": form.errors.get_json_data()}, status=400)


def _write_failed(store):
    return JsonResponse(
        {"error": WRITE_FAILED_MESSAGE, "failed_writes": store.failed_writes()},
        status=409,
    )


def _parse_day(value):
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f"Not a calendar date: {value}") from None


def _validation_message(exc):
    return " ".join(exc.messages)


def _event_payload(store, event):
    if event is None:
        return None
    return describe_event(event, store.today)


class CoconView(View):
    """Builds the store for the request and turns rule violations into JSON."""

    role_required = True

    def dispatch(self, request, *args, **kwargs):
        self.store = _build_store(request)
        if self.role_required and self.store.state.role not in ROLES:
            return JsonResponse({"error": "Enter your code first."}, status=403)
        try:
            return super().dispatch(request, *args, **kwargs)
        except PermissionDenied as exc:
            return JsonResponse({"error": str(exc)}, status=403)
        except ValidationError as exc:
            return JsonResponse({"error": _validation_message(exc)}, status=400)


class AccessView(CoconView):
    role_required = False

    def get(self, request):
        store = self.store
        payload = {
            "codes_configured": store.codes_configured(),
            "role": store.state.role,
        }
        if not payload["codes_configured"]:
            payload["warning"] = CODES_MISSING_MESSAGE
        return JsonResponse(payload)

    def post(self, request):
        store = self.store
        if not store.codes_configured():
            return JsonResponse(
                {"error": CODES_MISSING_MESSAGE, "codes_configured": False},
                status=503,
            )

        form = AccessCodeForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)

        if not store.attempt_login_with_code(form.cleaned_data["code"]):
            return JsonResponse({"error": LOGIN_MISMATCH_MESSAGE}, status=401)
        return JsonResponse({"role": store.state.role})


class LogoutView(CoconView):
    role_required = False

    def post(self, request):
        self.store.logout()
        return JsonResponse({"role": None})


class StateView(CoconView):
    def get(self, request):
        store = self.store
        event = store.selected_event()
        return JsonResponse(
            {
                "is_initialized": store.state.is_initialized,
                "role": store.state.role,
                "events": [_event_payload(store, item) for item in store.state.events],
                "selected_event": _event_payload(store, event),
                "default_day": (
                    default_day_for_event(event, store.today) if event else None
                ),
                "days_with_entries": store.days_with_entries(),
                "failed_writes": store.failed_writes(),
            }
        )


class EventListView(CoconView):
    def get(self, request):
        store = self.store
        return JsonResponse(
            {"events": [_event_payload(store, item) for item in store.state.events]}
        )

    def post(self, request):
        store = self.store
        form = EventForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)

        event_id = store.add_event(form.cleaned_data)
        if event_id is None:
            return _write_failed(store)
        event = next(item for item in store.state.events if item["id"] == event_id)
        return JsonResponse({"event": _event_payload(store, event)}, status=201)


class EventDetailView(CoconView):
    def post(self, request, event_id):
        store = self.store
        action = request.POST.get("action", "update")

        if action == "delete":
            if not store.delete_event(event_id):
                return _write_failed(store)
            return JsonResponse({"deleted": event_id})

        form = EventUpdateForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        changes = form.changes()
        if "is_evergreen" in request.POST:
            changes["is_evergreen"] = request.POST["is_evergreen"]
        if not store.update_event(event_id, changes):
            return _write_failed(store)
        event = next(item for item in store.state.events if item["id"] == event_id)
        return JsonResponse({"event": _event_payload(store, event)})


class SelectEventView(CoconView):
    def post(self, request):
        store = self.store
        form = SelectEventForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)

        store.select_event(form.cleaned_data["event_id"] or None)
        event = store.selected_event()
        return JsonResponse(
            {
                "selected_event": _event_payload(store, event),
                "default_day": (
                    default_day_for_event(event, store.today) if event else None
                ),
                "days_with_entries": store.days_with_entries(),
            }
        )


class DayView(CoconView):
    def _day(self, value, for_write=False):
        day = _parse_day(value)
        event = self.store.selected_event()
        if event is None:
            raise ValidationError("Select an event first.")
        if for_write and not is_date_in_event(event, day):
            raise ValidationError("That day is outside this event.")
        return day

    def _respond(self, day, status=200, **extra):
        payload = {"log": day_payload(self.store, day)}
        payload.update(extra)
        return JsonResponse(payload, status=status)

    def get(self, request, day):
        return self._respond(self._day(day))

    def post(self, request, day):
        day = self._day(day, for_write=True)
        action = request.POST.get("action", "save")
        handler = getattr(self, f"_handle_{action}", None)
        if handler is None:
            return JsonResponse({"error": f"Unknown action: {action}"}, status=400)
        return handler(request, day)

    def _handle_save(self, request, day):
        form = DayLogForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        saved, song_error = save_day(self.store, day, form.cleaned_data)
        if not saved:
            return _write_failed(self.store)
        return self._respond(day, song_error=song_error)

    def _handle_add_note(self, request, day):
        form = NoteForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        if self.store.append_note(day, form.cleaned_data["text"]) is None:
            return _write_failed(self.store)
        return self._respond(day, status=201)

    def _handle_delete_note(self, request, day):
        form = DeleteNoteForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        if not self.store.delete_note(day, form.cleaned_data["note_id"]):
            return _write_failed(self.store)
        return self._respond(day)

    def _handle_delete_day(self, request, day):
        if not self.store.delete_log(day):
            return _write_failed(self.store)
        return self._respond(day)

    def _handle_upload_photo(self, request, day):
        form = PhotoForm(request.POST, request.FILES)
        if not form.is_valid():
            return _form_errors(form)
        photo = self.store.upload_photo(
            day, form.cleaned_data["photo"].read(), form.cleaned_data["hint"]
        )
        if photo is None:
            return _write_failed(self.store)
        return self._respond(day, status=201)

    def _handle_delete_photo(self, request, day):
        if not self.store.delete_photo(day):
            return _write_failed(self.store)
        return self._respond(day)


class SuggestRepliesView(CoconView):
    def post(self, request):
        form = SuggestRepliesForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        try:
            result = generate_suggested_replies(form.cleaned_data["note"])
        except AIHelperError as exc:
            return JsonResponse({"error": str(exc)}, status=502)
        return JsonResponse(result)


class SongDetailsView(CoconView):
    def post(self, request):
        form = SongLinkForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        try:
            details = extract_song_details(form.cleaned_data["url"])
        except SongLookupError as exc:
            return JsonResponse({"error": str(exc), "reason": exc.reason}, status=502)
        return JsonResponse(details)


class BucketListView(CoconView):
    def get(self, request):
        return JsonResponse({"items": self.store.load_bucket_list()})

    def post(self, request):
        form = BucketItemForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        self.store.load_bucket_list()
        item = self.store.add_bucket_list_item(form.cleaned_data["text"])
        if item is None:
            return _write_failed(self.store)
        return JsonResponse({"item": item}, status=201)


class BucketItemView(CoconView):
    def post(self, request, item_id):
        store = self.store
        store.load_bucket_list()
        action = request.POST.get("action", "toggle")

        if action == "delete":
            if not store.delete_bucket_list_item(item_id):
                return _write_failed(store)
            return JsonResponse({"deleted": item_id})

        form = BucketToggleForm(request.POST)
        if not form.is_valid():
            return _form_errors(form)
        if not store.toggle_bucket_list_item(item_id, form.cleaned_data["completed"]):
            return _write_failed(store)
        item = next(item for item in store.state.bucket_list if item["id"] == item_id)
        return JsonResponse({"item": item})


class ResetView(CoconView):
    def post(self, request):
        store = self.store
        if not store.reset_all_app_data():
            return _write_failed(store)
        return JsonResponse(
            {"events": [_event_payload(store, item) for item in store.state.events]}
        )
