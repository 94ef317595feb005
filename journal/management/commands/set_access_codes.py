"""
Write the shared access codes to the config/appSettings document.

Usage:
    python manage.py set_access_codes --editor=EDITOR_CODE --partner=PARTNER_CODE
    python manage.py set_access_codes --partner=NEW_CODE     # keep the editor code
    python manage.py set_access_codes --clear                # disable login
"""

from django.core.management.base import BaseCommand, CommandError

from journal.constants import CONFIG_COLLECTION, SETTINGS_DOCUMENT_ID
from journal.gateway import DocumentGateway


class Command(BaseCommand):
    help = "Set the editor and partner access codes"

    def add_arguments(self, parser):
        parser.add_argument("--editor", help="Code that signs in as the editor")
        parser.add_argument("--partner", help="Code that signs in as the partner")
        parser.add_argument(
            "--clear",
            action="store_true",
            help="Remove both codes",
        )

    def handle(self, *args, **options):
        if options["clear"]:
            record = {"editor_code": "", "partner_code": ""}
        else:
            record = {
                f"{role}_code": options[role]
                for role in ("editor", "partner")
                if options[role] is not None
            }
            if not record:
                raise CommandError("Pass --editor, --partner or --clear.")

        gateway = DocumentGateway()
        stored = gateway.get_document(CONFIG_COLLECTION, SETTINGS_DOCUMENT_ID) or {}
        editor = record.get("editor_code", stored.get("editor_code"))
        partner = record.get("partner_code", stored.get("partner_code"))
        if editor and partner and editor == partner:
            raise CommandError("The editor and partner codes must differ.")

        if not gateway.set_document(
            CONFIG_COLLECTION, SETTINGS_DOCUMENT_ID, record, merge=True
        ):
            raise CommandError("Could not save the access codes. See the log.")

        self.stdout.write(
            self.style.SUCCESS(f"Updated {', '.join(sorted(record))}.")
        )
