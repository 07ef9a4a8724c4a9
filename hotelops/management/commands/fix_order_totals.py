from django.core.management.base import BaseCommand

from hotelops.models import LaundryOrder
from hotelops.utils import recalculate_order_totals


class Command(BaseCommand):
    help = 'Recompute laundry order totals from their line items and report payment status changes'

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

        orders = LaundryOrder.objects.all()
        before = {order.pk: order.payment_status for order in orders}
        changed = recalculate_order_totals(orders, dry_run=dry_run)

        if not changed:
            self.stdout.write(self.style.SUCCESS("All laundry order totals are consistent."))
            return

        self.stdout.write(f"\nFound {len(changed)} laundry orders with stale totals:")
        for order, old_total, new_total in changed:
            self.stdout.write(
                f"Order {order.order_number} ({order.customer_name}): {old_total} -> {new_total}, "
                f"{before[order.pk]} -> {order.payment_status}"
            )

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"\nWould update {len(changed)} orders. Run without --dry-run to apply changes.")
            )
        else:
            self.stdout.write(self.style.SUCCESS(f"\nUpdated {len(changed)} laundry order totals."))
