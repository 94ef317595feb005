from django.urls import path

from .views import (
    AccessView,
    BucketItemView,
    BucketListView,
    DayView,
    EventDetailView,
    EventListView,
    LogoutView,
    ResetView,
    SelectEventView,
    SongDetailsView,
    StateView,
    SuggestRepliesView,
)

app_name = "journal"

urlpatterns = [
    path("access/", AccessView.as_view(), name="access"),
    path("access/logout/", LogoutView.as_view(), name="logout"),
    path("state/", StateView.as_view(), name="state"),
    path("events/", EventListView.as_view(), name="events"),
    path("events/select/", SelectEventView.as_view(), name="select_event"),
    path("events/<str:event_id>/", EventDetailView.as_view(), name="event_detail"),
    path("day/<str:day>/", DayView.as_view(), name="day"),
    path("ai/replies/", SuggestRepliesView.as_view(), name="suggest_replies"),
    path("ai/song/", SongDetailsView.as_view(), name="song_details"),
    path("bucket-list/", BucketListView.as_view(), name="bucket_list"),
    path("bucket-list/<str:item_id>/", BucketItemView.as_view(), name="bucket_item"),
    path("reset/", ResetView.as_view(), name="reset"),
]
