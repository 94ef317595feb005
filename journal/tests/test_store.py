from datetime import date
from unittest.mock import patch

from django.core.exceptions import PermissionDenied, ValidationError
from django.core.files.storage import default_storage
from django.db import DatabaseError
from django.test import TestCase, override_settings

from journal.constants import (
    EDITOR,
    EVERGREEN_EVENT_ID,
    PARTNER,
    ROLE_SESSION_KEY,
    SELECTED_EVENT_SESSION_KEY,
)
from journal.gateway import DocumentGateway
from journal.models import AppSettings, BucketListItem, DailyLog, Event, LogNote
from journal.store import CoconStore, NoEventSelected, normalize_log


TODAY = date(2024, 6, 5)

IN_MEMORY_STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.InMemoryStorage"},
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"
    },
}


class StoreTestCase(TestCase):
    def setUp(self):
        AppSettings.objects.create(editor_code="sunrise", partner_code="moonlight")

    def _store(self, role=EDITOR, session=None):
        if session is None:
            session = {ROLE_SESSION_KEY: role} if role else {}
        store = CoconStore(session, today=TODAY)
        store.initialize()
        return store

    def _add_trip(self, store, event_id="e1", name="Trip"):
        return store.add_event(
            {
                "id": event_id,
                "name": name,
                "start_date": date(2024, 6, 1),
                "end_date": date(2024, 6, 10),
            }
        )


class InitializeTests(StoreTestCase):
    def test_creates_the_evergreen_event_once(self):
        store = self._store()
        self._store()

        self.assertTrue(store.state.is_initialized)
        self.assertEqual(store.state.events[0]["id"], EVERGREEN_EVENT_ID)
        self.assertEqual(Event.objects.filter(is_evergreen=True).count(), 1)

    def test_restores_role_and_selected_event_from_the_session(self):
        editor = self._store()
        self._add_trip(editor)
        editor.select_event("e1")
        editor.upsert_log(TODAY, {"prompt_for_partner": "How was work?"})

        store = self._store(session=dict(editor.session))

        self.assertEqual(store.state.role, EDITOR)
        self.assertEqual(store.state.selected_event_id, "e1")
        self.assertEqual(
            store.get_log(TODAY)["prompt_for_partner"], "How was work?"
        )

    def test_ignores_unknown_roles_and_stale_selections(self):
        session = {ROLE_SESSION_KEY: "guest", SELECTED_EVENT_SESSION_KEY: "gone"}

        store = self._store(session=session)

        self.assertIsNone(store.state.role)
        self.assertIsNone(store.state.selected_event_id)
        self.assertNotIn(SELECTED_EVENT_SESSION_KEY, session)

    def test_fails_open_when_the_database_is_unreachable(self):
        with patch.object(
            DocumentGateway, "get_document", side_effect=DatabaseError("down")
        ):
            store = self._store()

        self.assertTrue(store.state.is_initialized)
        self.assertEqual(store.state.events, [])
        self.assertFalse(store.codes_configured())


class LoginTests(StoreTestCase):
    def test_codes_map_to_roles(self):
        editor = self._store(role=None)
        partner = self._store(role=None)

        self.assertTrue(editor.attempt_login_with_code("sunrise"))
        self.assertTrue(partner.attempt_login_with_code("moonlight"))
        self.assertEqual(editor.state.role, EDITOR)
        self.assertEqual(partner.state.role, PARTNER)
        self.assertEqual(partner.session[ROLE_SESSION_KEY], PARTNER)

    def test_codes_are_case_sensitive(self):
        store = self._store(role=None)

        self.assertFalse(store.attempt_login_with_code("Sunrise"))
        self.assertIsNone(store.state.role)
        self.assertNotIn(ROLE_SESSION_KEY, store.session)

    def test_nothing_matches_when_no_codes_are_configured(self):
        AppSettings.objects.all().delete()
        store = self._store(role=None)

        self.assertFalse(store.codes_configured())
        self.assertFalse(store.attempt_login_with_code(""))
        self.assertFalse(store.attempt_login_with_code("sunrise"))

    def test_blank_code_never_matches_an_unset_code(self):
        AppSettings.objects.filter(pk="appSettings").update(partner_code="")
        store = self._store(role=None)

        self.assertFalse(store.attempt_login_with_code(""))
        self.assertTrue(store.attempt_login_with_code("sunrise"))

    def test_logout_clears_the_role(self):
        store = self._store()

        store.logout()

        self.assertIsNone(store.state.role)
        self.assertNotIn(ROLE_SESSION_KEY, store.session)


class EventTests(StoreTestCase):
    def test_only_the_editor_creates_events(self):
        with self.assertRaises(PermissionDenied):
            self._add_trip(self._store(role=PARTNER))

        self.assertFalse(Event.objects.filter(pk="e1").exists())

    def test_add_event_requires_ordered_dates(self):
        store = self._store()

        with self.assertRaises(ValidationError):
            store.add_event({"name": "Trip", "start_date": date(2024, 6, 1)})
        with self.assertRaises(ValidationError):
            store.add_event(
                {
                    "name": "Trip",
                    "start_date": date(2024, 6, 2),
                    "end_date": date(2024, 6, 1),
                }
            )

    def test_events_are_kept_sorted(self):
        store = self._store()
        self._add_trip(store)
        store.add_event(
            {
                "id": "e2",
                "name": "Concert",
                "start_date": date(2024, 8, 1),
                "end_date": date(2024, 8, 1),
            }
        )

        self.assertEqual(
            [event["id"] for event in store.state.events],
            [EVERGREEN_EVENT_ID, "e2", "e1"],
        )
        self.assertEqual(Event.objects.get(pk="e2").created_by, EDITOR)

    def test_evergreen_dates_are_locked(self):
        store = self._store()

        with self.assertRaises(ValidationError):
            store.update_event(EVERGREEN_EVENT_ID, {"start_date": date(2024, 1, 1)})
        with self.assertRaises(ValidationError):
            store.update_event(EVERGREEN_EVENT_ID, {"is_evergreen": False})
        with self.assertRaises(ValidationError):
            store.delete_event(EVERGREEN_EVENT_ID)

        self.assertTrue(store.update_event(EVERGREEN_EVENT_ID, {"name": "Everyday Us"}))
        self.assertEqual(Event.objects.get(pk=EVERGREEN_EVENT_ID).name, "Everyday Us")
        self.assertIsNone(Event.objects.get(pk=EVERGREEN_EVENT_ID).start_date)

    def test_update_event_checks_the_combined_dates(self):
        store = self._store()
        self._add_trip(store)

        with self.assertRaises(ValidationError):
            store.update_event("e1", {"end_date": date(2024, 5, 1)})

        self.assertTrue(store.update_event("e1", {"end_date": date(2024, 6, 20)}))
        self.assertEqual(Event.objects.get(pk="e1").end_date, date(2024, 6, 20))

    def test_delete_event_removes_only_its_logs(self):
        store = self._store()
        self._add_trip(store, "e1")
        self._add_trip(store, "e2", name="Other trip")
        store.select_event("e1")
        store.upsert_log(date(2024, 6, 2), {"editor_notes": ["day one"]})
        store.upsert_log(date(2024, 6, 3), {"prompt_for_partner": "Dinner?"})
        store.select_event("e2")
        store.upsert_log(date(2024, 6, 2), {"editor_notes": ["kept"]})
        store.select_event("e1")

        self.assertTrue(store.delete_event("e1"))

        self.assertFalse(Event.objects.filter(pk="e1").exists())
        self.assertFalse(DailyLog.objects.filter(event_id="e1").exists())
        self.assertTrue(DailyLog.objects.filter(pk="e2_2024-06-02").exists())
        self.assertIsNone(store.state.selected_event_id)
        self.assertNotIn("e1", [event["id"] for event in store.state.events])

    def test_failed_delete_keeps_local_state(self):
        store = self._store()
        self._add_trip(store)

        with patch.object(DocumentGateway, "batch_delete", return_value=False):
            self.assertFalse(store.delete_event("e1"))

        self.assertIn("e1", [event["id"] for event in store.state.events])
        self.assertIn("events/e1", store.failed_writes())

    def test_add_event_rejects_ids_already_in_use(self):
        store = self._store()
        self._add_trip(store)

        with self.assertRaises(ValidationError):
            self._add_trip(store, EVERGREEN_EVENT_ID, name="Hijack")
        with self.assertRaises(ValidationError):
            self._add_trip(store, "e1", name="Trip again")

        evergreen = Event.objects.get(pk=EVERGREEN_EVENT_ID)
        self.assertEqual(evergreen.name, "Daily Life")
        self.assertTrue(evergreen.is_evergreen)
        self.assertIsNone(evergreen.start_date)
        self.assertEqual(Event.objects.get(pk="e1").name, "Trip")
        ids = [event["id"] for event in store.state.events]
        self.assertEqual(sorted(ids), sorted(set(ids)))

    def test_select_unknown_event_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._store().select_event("nope")


class DailyLogTests(StoreTestCase):
    def setUp(self):
        super().setUp()
        self.store = self._store()
        self._add_trip(self.store)
        self.store.select_event("e1")

    def test_get_log_needs_a_selected_event(self):
        self.store.select_event(None)

        self.assertIsNone(self.store.get_log(TODAY))
        with self.assertRaises(NoEventSelected):
            self.store.upsert_log(TODAY, {"prompt_for_partner": "Hi"})

    def test_upsert_fills_missing_fields_and_replaces_sent_lists(self):
        self.store.upsert_log(TODAY, {"editor_notes": ["hi"]})
        self.store.upsert_log(TODAY, {"editor_notes": ["hi", "there"]})

        log = self.store.get_log(TODAY)
        self.assertEqual(log["editor_notes"], ["hi", "there"])
        self.assertEqual(log["partner_notes"], [])
        self.assertEqual(log["prompt_for_partner"], "")
        self.assertEqual(log["prompt_for_editor"], "")
        self.assertEqual(log["moods"], {"editor": None, "partner": None})
        self.assertEqual(LogNote.objects.count(), 2)

    def test_normalize_log_overlays_role_slots(self):
        log = normalize_log(
            {"moods": {"editor": "😊", "partner": "😴"}, "editor_notes": ["a"]},
            {"moods": {"partner": "🥰"}},
        )

        self.assertEqual(log["moods"], {"editor": "😊", "partner": "🥰"})
        self.assertEqual(log["editor_notes"], ["a"])
        self.assertEqual(log["songs"], {"editor": None, "partner": None})

    def test_roles_do_not_overwrite_each_other(self):
        partner = self._store(role=PARTNER)
        partner.select_event("e1")

        self.store.append_note(TODAY, "Good morning")
        partner.append_note(TODAY, "Good night")
        partner.upsert_log(TODAY, {"moods": {PARTNER: "🥰"}, "prompt_for_editor": "Call me?"})
        self.store.upsert_log(TODAY, {"moods": {EDITOR: "😊"}, "prompt_for_partner": "Dinner?"})

        log = self._store(session=dict(self.store.session)).get_log(TODAY)
        self.assertEqual(log["editor_notes"], ["Good morning"])
        self.assertEqual(log["partner_notes"], ["Good night"])
        self.assertEqual(log["moods"][EDITOR], "😊")
        self.assertEqual(log["moods"][PARTNER], "🥰")
        self.assertEqual(log["prompt_for_editor"], "Call me?")
        self.assertEqual(log["prompt_for_partner"], "Dinner?")

    def test_each_role_writes_only_its_own_side(self):
        partner = self._store(role=PARTNER)
        partner.select_event("e1")

        with self.assertRaises(PermissionDenied):
            partner.upsert_log(TODAY, {"moods": {EDITOR: "X"}})
        with self.assertRaises(PermissionDenied):
            partner.upsert_log(TODAY, {"prompt_for_partner": "forged"})
        with self.assertRaises(PermissionDenied):
            self.store.upsert_log(TODAY, {"partner_notes": ["forged"]})
        with self.assertRaises(PermissionDenied):
            self.store.upsert_log(TODAY, {"photos": {PARTNER: None}})

        self.assertFalse(DailyLog.objects.exists())

    def test_logged_out_visitor_cannot_write_a_log(self):
        visitor = self._store(session={SELECTED_EVENT_SESSION_KEY: "e1"})

        with self.assertRaises(PermissionDenied):
            visitor.upsert_log(TODAY, {"prompt_for_partner": "hi"})

        self.assertFalse(DailyLog.objects.exists())

    def test_read_failure_after_a_write_keeps_the_local_copy(self):
        with patch.object(
            DocumentGateway, "get_document", side_effect=DatabaseError("down")
        ):
            self.assertTrue(self.store.upsert_log(TODAY, {"prompt_for_partner": "hi"}))
            self.assertIsNotNone(self.store.append_note(TODAY, "Good night"))

        self.assertEqual(self.store.get_log(TODAY)["prompt_for_partner"], "hi")
        self.assertEqual(self.store.failed_writes(), [])
        self.assertEqual(
            DailyLog.objects.get(pk="e1_2024-06-05").prompt_for_partner, "hi"
        )
        self.assertEqual(LogNote.objects.get().text, "Good night")

    def test_empty_note_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.append_note(TODAY, "   ")

    def test_partner_deletes_only_own_notes(self):
        partner = self._store(role=PARTNER)
        partner.select_event("e1")
        editor_note = self.store.append_note(TODAY, "From the editor")
        partner_note = partner.append_note(TODAY, "From the partner")

        with self.assertRaises(PermissionDenied):
            partner.delete_note(TODAY, editor_note["id"])
        self.assertTrue(partner.delete_note(TODAY, partner_note["id"]))
        self.assertEqual(partner.get_log(TODAY)["partner_notes"], [])

    def test_editor_deletes_any_note(self):
        partner = self._store(role=PARTNER)
        partner.select_event("e1")
        partner_note = partner.append_note(TODAY, "From the partner")
        editor = self._store(session=dict(self.store.session))

        self.assertTrue(editor.delete_note(TODAY, partner_note["id"]))
        self.assertFalse(LogNote.objects.exists())

    def test_only_the_editor_deletes_a_day(self):
        self.store.upsert_log(TODAY, {"prompt_for_partner": "Dinner?"})
        partner = self._store(role=PARTNER)
        partner.select_event("e1")

        with self.assertRaises(PermissionDenied):
            partner.delete_log(TODAY)
        self.assertTrue(self.store.delete_log(TODAY))
        self.assertIsNone(self.store.get_log(TODAY))
        self.assertFalse(DailyLog.objects.exists())

    def test_failed_write_leaves_local_state_untouched(self):
        with patch.object(DocumentGateway, "set_document", return_value=False):
            self.assertFalse(self.store.upsert_log(TODAY, {"editor_notes": ["hi"]}))

        self.assertIsNone(self.store.get_log(TODAY))
        self.assertEqual(self.store.failed_writes(), ["dailyLogs/e1_2024-06-05"])

        self.assertTrue(self.store.upsert_log(TODAY, {"editor_notes": ["hi"]}))
        self.assertEqual(self.store.failed_writes(), [])

    def test_days_with_entries(self):
        self.store.upsert_log(date(2024, 6, 3), {"moods": {EDITOR: "😊"}})
        self.store.upsert_log(date(2024, 6, 2), {"prompt_for_partner": "Dinner?"})
        self.store.upsert_log(date(2024, 6, 4), {"moods": {EDITOR: None}})

        self.assertEqual(
            self.store.days_with_entries(), [date(2024, 6, 2), date(2024, 6, 3)]
        )

    @override_settings(STORAGES=IN_MEMORY_STORAGES, USE_CLOUDINARY=False)
    def test_upload_and_delete_photo(self):
        photo = self.store.upload_photo(TODAY, b"jpeg bytes", " sunset ")

        path = "dailyPhotos/e1/2024-06-05/editor_photo"
        self.assertEqual(photo, {"url": "/media/" + path, "hint": "sunset"})
        self.assertEqual(self.store.get_log(TODAY)["photos"][EDITOR], photo)
        self.assertTrue(default_storage.exists(path))

        self.assertTrue(self.store.delete_photo(TODAY))
        self.assertIsNone(self.store.get_log(TODAY)["photos"][EDITOR])
        self.assertFalse(default_storage.exists(path))

    def test_failed_upload_is_recorded(self):
        with patch.object(DocumentGateway, "upload_blob", return_value=None):
            self.assertIsNone(self.store.upload_photo(TODAY, b"jpeg bytes"))

        self.assertEqual(
            self.store.failed_writes(), ["blob/dailyPhotos/e1/2024-06-05/editor_photo"]
        )
        self.assertIsNone(self.store.get_log(TODAY))


class ResetTests(StoreTestCase):
    def test_reset_keeps_codes_bucket_list_and_evergreen(self):
        store = self._store()
        self._add_trip(store)
        store.select_event("e1")
        store.upsert_log(TODAY, {"editor_notes": ["hi"]})
        store.select_event(EVERGREEN_EVENT_ID)
        store.upsert_log(TODAY, {"editor_notes": ["hey"]})
        store.add_bucket_list_item("See the Northern Lights")

        self.assertTrue(store.reset_all_app_data())

        self.assertEqual(list(Event.objects.values_list("pk", flat=True)), [EVERGREEN_EVENT_ID])
        self.assertFalse(DailyLog.objects.exists())
        self.assertEqual(BucketListItem.objects.count(), 1)
        self.assertTrue(AppSettings.objects.filter(editor_code="sunrise").exists())
        self.assertEqual([event["id"] for event in store.state.events], [EVERGREEN_EVENT_ID])
        self.assertIsNone(store.state.selected_event_id)

    def test_partner_cannot_reset(self):
        with self.assertRaises(PermissionDenied):
            self._store(role=PARTNER).reset_all_app_data()


class BucketListTests(StoreTestCase):
    def test_partner_adds_and_toggles_but_cannot_delete(self):
        partner = self._store(role=PARTNER)
        partner.load_bucket_list()

        item = partner.add_bucket_list_item("  Learn to salsa  ")
        self.assertEqual(item["text"], "Learn to salsa")
        self.assertEqual(item["created_by"], PARTNER)
        self.assertFalse(item["completed"])

        self.assertTrue(partner.toggle_bucket_list_item(item["id"], True))
        self.assertTrue(BucketListItem.objects.get(pk=item["id"]).completed)

        with self.assertRaises(PermissionDenied):
            partner.delete_bucket_list_item(item["id"])

        editor = self._store()
        editor.load_bucket_list()
        self.assertTrue(editor.delete_bucket_list_item(item["id"]))
        self.assertFalse(BucketListItem.objects.exists())

    def test_empty_item_is_rejected(self):
        store = self._store()

        with self.assertRaises(ValidationError):
            store.add_bucket_list_item("   ")

    def test_item_is_kept_when_the_reload_fails(self):
        store = self._store()
        store.load_bucket_list()

        with patch.object(
            DocumentGateway, "get_document", side_effect=DatabaseError("down")
        ):
            item = store.add_bucket_list_item("Road trip")

        self.assertEqual(item["text"], "Road trip")
        self.assertEqual(store.state.bucket_list, [item])
        self.assertTrue(BucketListItem.objects.filter(pk=item["id"]).exists())

    def test_logged_out_visitor_cannot_add(self):
        with self.assertRaises(PermissionDenied):
            self._store(role=None).add_bucket_list_item("Road trip")
