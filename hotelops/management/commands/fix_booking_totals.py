from django.core.management.base import BaseCommand

from hotelops.models import Booking
from hotelops.utils import recalculate_booking_totals


class Command(BaseCommand):
    help = 'Recompute booking room charges (nights x nightly rate) that are missing or stale'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be updated without making changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        if dry_run:
            self.stdout.write("DRY RUN MODE - No changes will be made")

        changed = recalculate_booking_totals(Booking.objects.all(), dry_run=dry_run)

        if not changed:
            self.stdout.write(self.style.SUCCESS("All booking totals are correct."))
            return

        self.stdout.write(f"\nFound {len(changed)} bookings with incorrect totals:")
        for booking, old_total, new_total in changed:
            self.stdout.write(
                f"Booking {booking.booking_reference} ({booking.guest.name}, Room {booking.room.number}): "
                f"{booking.nights} nights x {booking.room.price} = {new_total} (was: {old_total})"
            )

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"\nWould update {len(changed)} bookings. Run without --dry-run to apply changes.")
            )
        else:
            self.stdout.write(self.style.SUCCESS(f"\nUpdated {len(changed)} booking totals."))
