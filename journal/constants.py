EDITOR = "editor"
PARTNER = "partner"
ROLES = (EDITOR, PARTNER)

ROLE_SESSION_KEY = "notreCoconUserRole"
SELECTED_EVENT_SESSION_KEY = "notreCoconSelectedEvent"

CONFIG_COLLECTION = "config"
SETTINGS_DOCUMENT_ID = "appSettings"
EVENTS_COLLECTION = "events"
LOGS_COLLECTION = "dailyLogs"
BUCKET_LIST_COLLECTION = "bucketList"

EVERGREEN_EVENT_ID = "daily-life"
EVERGREEN_EVENT_NAME = "Daily Life"

# Fields that can never change on the evergreen event.
EVERGREEN_LOCKED_FIELDS = ("start_date", "end_date", "is_evergreen")

DATE_FORMAT = "%Y-%m-%d"

PHOTO_PATH_TEMPLATE = "dailyPhotos/{event_id}/{date}/{role}_photo"

MAX_SUGGESTED_REPLIES = 3

LOGIN_MISMATCH_MESSAGE = "That code doesn't seem right. Please try again."
CODES_MISSING_MESSAGE = (
    "Access codes are not configured yet. Ask the editor to set them up."
)
