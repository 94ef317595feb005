"""What each role may read and write on a single day's log."""

from .constants import EDITOR, PARTNER
from .services import SongLookupError, extract_song_details, song_display_title
from .store import empty_log


ROLE_FIELDS = {
    EDITOR: {
        "notes": "editor_notes",
        "prompt": "prompt_for_partner",
        "other": PARTNER,
    },
    PARTNER: {
        "notes": "partner_notes",
        "prompt": "prompt_for_editor",
        "other": EDITOR,
    },
}


def can_delete_note(role, note) -> bool:
    if role == EDITOR:
        return True
    return role == PARTNER and note["role"] == PARTNER


def _side(log, role):
    fields = ROLE_FIELDS[role]
    other = fields["other"]
    return {
        "role": role,
        "notes": log[fields["notes"]],
        "mood": log["moods"].get(role),
        "song": log["songs"].get(role),
        "photo": log["photos"].get(role),
        "prompt_written": log[fields["prompt"]],
        "prompt_received": log[ROLE_FIELDS[other]["prompt"]],
    }


def day_payload(store, day):
    role = store.state.role
    stored = store.get_log(day)
    log = {**empty_log(), **(stored or {})}
    return {
        "date": day,
        "event_id": store.state.selected_event_id,
        "has_entry": stored is not None,
        "own_side": _side(log, role),
        "other_side": _side(log, ROLE_FIELDS[role]["other"]),
        "notes": [
            {**note, "deletable": can_delete_note(role, note)}
            for note in log.get("note_items", [])
        ],
        "can_delete_day": role == EDITOR and stored is not None,
    }


def save_day(store, day, cleaned_data):
    """Write the caller's own mood, song and prompt, then append a new note.

    Returns ``(saved, song_error)``; a failed title lookup never blocks the
    save, it only leaves the title blank.
    """
    role = store.state.role
    fields = ROLE_FIELDS[role]
    song_error = None

    link = (cleaned_data.get("song_link") or "").strip()
    title = (cleaned_data.get("song_title") or "").strip()
    if link and not title and cleaned_data.get("autofill_title"):
        try:
            title = song_display_title(extract_song_details(link))
        except SongLookupError as exc:
            song_error = str(exc)

    partial = {
        "moods": {role: cleaned_data.get("mood") or None},
        "songs": {role: {"link": link, "title": title} if link else None},
        fields["prompt"]: cleaned_data.get("prompt") or "",
    }
    saved = store.upsert_log(day, partial)

    note = (cleaned_data.get("note") or "").strip()
    if saved and note:
        saved = store.append_note(day, note) is not None
    return saved, song_error
