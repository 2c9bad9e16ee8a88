from django.core.management.base import BaseCommand

from circulation.reports import weekly_summary


class Command(BaseCommand):
    help = "Store a summary of the last 7 days of circulation."

    def handle(self, *args, **options):
        snapshot = weekly_summary()
        data = snapshot.data
        self.stdout.write(f"Weekly summary #{snapshot.pk} ({snapshot.period_start:%Y-%m-%d} to {snapshot.period_end:%Y-%m-%d})")
        for key in ("total_checkouts", "total_returns", "overdue_returns", "currently_overdue"):
            self.stdout.write(f"- {key}: {data[key]}")
        self.stdout.write(self.style.SUCCESS("Done."))
