from django.core.management.base import BaseCommand

from circulation.reports import SWEEP_BATCH_SIZE, overdue_sweep


class Command(BaseCommand):
    help = "Flag open loans past their due date (plus grace period) as overdue. Meant to run daily from cron."

    def add_arguments(self, parser):
        parser.add_argument(
            "--batch-size",
            type=int,
            default=SWEEP_BATCH_SIZE,
            help="Number of loans flagged per database transaction.",
        )

    def handle(self, *args, **options):
        result = overdue_sweep(batch_size=options["batch_size"])
        self.stdout.write(
            self.style.SUCCESS(
                f"Overdue sweep at {result['checked_at']:%Y-%m-%d %H:%M}: "
                f"{result['overdue_count']} loan(s) newly flagged."
            )
        )
