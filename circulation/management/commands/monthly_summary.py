from django.core.management.base import BaseCommand

from circulation.reports import monthly_summary


class Command(BaseCommand):
    help = "Store a summary of the last 30 days of circulation plus collection health."

    def handle(self, *args, **options):
        snapshot = monthly_summary()
        data = snapshot.data
        self.stdout.write(f"Monthly summary #{snapshot.pk} ({snapshot.period_start:%Y-%m-%d} to {snapshot.period_end:%Y-%m-%d})")
        self.stdout.write(f"- checkouts: {data['monthly_checkouts']}, returns: {data['monthly_returns']}")
        self.stdout.write(f"- currently overdue: {data['currently_overdue']}")
        self.stdout.write(f"- weeding candidates: {data['weeding_candidates_count']}")
        self.stdout.write(f"- collection value: {data['total_collection_value']}")
        self.stdout.write(self.style.SUCCESS("Done."))
