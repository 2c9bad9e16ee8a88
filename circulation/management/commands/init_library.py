from django.core.management.base import BaseCommand
from django.utils import timezone

from circulation.holidays import initialize_philippine_holidays
from circulation.policy import initialize_default_settings


class Command(BaseCommand):
    help = "Seed default library settings and the holiday calendar. Safe to run more than once."

    def add_arguments(self, parser):
        parser.add_argument(
            "--year",
            type=int,
            action="append",
            help="Year to seed holidays for (repeatable). Defaults to the current year.",
        )

    def handle(self, *args, **options):
        created = initialize_default_settings()
        self.stdout.write(f"Settings: {created} created.")

        years = options["year"] or [timezone.localdate().year]
        for year in years:
            holidays = initialize_philippine_holidays(year)
            self.stdout.write(f"Holidays {year}: {holidays} created.")

        self.stdout.write(self.style.SUCCESS("Library initialized."))
