from django.core.management.base import BaseCommand

from quotes.services.lifecycle import expire_overdue_quotes


class Command(BaseCommand):
    help = "Expire SENT/ACCEPTED quotes whose validity window has passed. Run from a scheduler."

    def handle(self, *args, **options):
        count = expire_overdue_quotes()
        self.stdout.write(self.style.SUCCESS(f"Expired {count} quote(s)."))
