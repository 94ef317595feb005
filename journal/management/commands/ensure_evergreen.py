from django.core.management.base import BaseCommand, CommandError

from journal.constants import EVENTS_COLLECTION, EVERGREEN_EVENT_ID
from journal.gateway import DocumentGateway
from journal.lifecycle import evergreen_event_record


class Command(BaseCommand):
    help = 'Create the evergreen "Daily Life" event if it is missing'

    def handle(self, *args, **options):
        gateway = DocumentGateway()
        if gateway.get_document(EVENTS_COLLECTION, EVERGREEN_EVENT_ID):
            self.stdout.write("The evergreen event already exists.")
            return

        record = evergreen_event_record()
        if not gateway.set_document(EVENTS_COLLECTION, record["id"], record, merge=False):
            raise CommandError("Could not create the evergreen event. See the log.")
        self.stdout.write(self.style.SUCCESS(f"Created {record['name']}."))
