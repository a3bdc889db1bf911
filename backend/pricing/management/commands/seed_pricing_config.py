from django.core.management.base import BaseCommand
from django.db import transaction

from pricing.models import CountryDistance, PricingConfig
from pricing.services.config_provider import (
    DEFAULT_COUNTRY_DISTANCES,
    DEFAULT_PRICING_CONFIG,
    get_config_provider,
)


class Command(BaseCommand):
    help = "Seed the first pricing config version and the default country distance table."

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Write a new config version even if one already exists.",
        )
        parser.add_argument(
            "--skip-distances",
            action="store_true",
            help="Only seed the pricing config.",
        )

    def handle(self, *args, **options):
        provider = get_config_provider()

        if PricingConfig.objects.exists() and not options["force"]:
            self.stdout.write(self.style.WARNING("Pricing config already present; use --force to add a version."))
        else:
            data = {k: v for k, v in DEFAULT_PRICING_CONFIG.items() if k != "version"}
            row = provider.update_pricing_config(data, user=None)
            self.stdout.write(self.style.SUCCESS(f"Saved pricing config v{row.version}."))

        if options["skip_distances"]:
            return

        created = 0
        with transaction.atomic():
            for origin, targets in DEFAULT_COUNTRY_DISTANCES.items():
                for destination, km in targets.items():
                    _, was_created = CountryDistance.objects.get_or_create(
                        origin_country=origin,
                        destination_country=destination,
                        defaults={"distance_km": km},
                    )
                    created += int(was_created)
        provider.invalidate()
        self.stdout.write(self.style.SUCCESS(f"Seeded {created} country distances."))
