from django import forms


class AccessCodeForm(forms.Form):
    code = forms.CharField(
        label="Your secret code",
        strip=False,
        widget=forms.PasswordInput(attrs={"placeholder": "Enter code here"}),
        error_messages={"required": "Please enter your special code."},
    )


class EventForm(forms.Form):
    name = forms.CharField(
        label="Event name",
        min_length=3,
        max_length=100,
        widget=forms.TextInput(attrs={"placeholder": "Our Summer Adventure"}),
        error_messages={
            "min_length": "Event name must be at least 3 characters long.",
            "max_length": "Event name must be 100 characters or less.",
        },
    )
    start_date = forms.DateField(
        error_messages={"required": "A start date is required."},
    )
    end_date = forms.DateField(
        error_messages={"required": "An end date is required."},
    )

    def clean(self):
        cleaned = super().clean()
        start_date = cleaned.get("start_date")
        end_date = cleaned.get("end_date")
        if start_date and end_date and end_date < start_date:
            self.add_error("end_date", "End date cannot be before start date.")
        return cleaned


class EventUpdateForm(forms.Form):
    name = forms.CharField(min_length=3, max_length=100, required=False)
    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)

    def changes(self):
        """Only the fields that were actually submitted."""
        return {
            name: self.cleaned_data[name]
            for name in self.fields
            if name in self.data and self.data.get(name) not in (None, "")
        }


class SelectEventForm(forms.Form):
    event_id = forms.CharField(required=False, max_length=64)


class DayLogForm(forms.Form):
    mood = forms.CharField(required=False, max_length=16)
    song_link = forms.URLField(
        required=False,
        widget=forms.URLInput(
            attrs={"placeholder": "https://open.spotify.com/track/..."}
        ),
    )
    song_title = forms.CharField(required=False, max_length=200)
    autofill_title = forms.BooleanField(required=False)
    prompt = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={"rows": 2}),
    )
    note = forms.CharField(
        required=False,
        widget=forms.Textarea(
            attrs={"rows": 4, "placeholder": "What's on your mind today..."}
        ),
    )


class NoteForm(forms.Form):
    text = forms.CharField(
        widget=forms.Textarea(
            attrs={"rows": 3, "placeholder": "Leave a sweet message for them..."}
        ),
    )


class DeleteNoteForm(forms.Form):
    note_id = forms.IntegerField(min_value=1)


class PhotoForm(forms.Form):
    photo = forms.FileField()
    hint = forms.CharField(required=False, max_length=100)


class BucketItemForm(forms.Form):
    text = forms.CharField(
        max_length=300,
        widget=forms.TextInput(attrs={"placeholder": "See the Northern Lights"}),
    )


class BucketToggleForm(forms.Form):
    completed = forms.BooleanField(required=False)


class SuggestRepliesForm(forms.Form):
    note = forms.CharField(widget=forms.Textarea(attrs={"rows": 4}))


class SongLinkForm(forms.Form):
    url = forms.URLField(label="Song link")
