from django.core.management.base import BaseCommand

from prospects.services import expire_prospects


class Command(BaseCommand):
    help = "Mark PENDING prospects whose invitation has run out as EXPIRED (rows are kept)."

    def handle(self, *args, **options):
        count = expire_prospects()
        self.stdout.write(self.style.SUCCESS(f"Expired {count} prospect(s)."))
