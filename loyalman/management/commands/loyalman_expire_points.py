"""Management command to expire earned points past their expiration date."""

from django.core.management.base import BaseCommand

from loyalman.services.ledger import expire_points


class Command(BaseCommand):
    help = "Expire earned points older than each program's expiration_months"

    def add_arguments(self, parser):
        parser.add_argument(
            "--hotel",
            default=None,
            help="Only expire points of this hotel",
        )

    def handle(self, *args, **options):
        expired = expire_points(hotel_id=options["hotel"])
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} points."))
