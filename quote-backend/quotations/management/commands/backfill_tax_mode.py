"""
Store a tax mode on quotations saved before Quotation.tax_mode existed.

The mode is inferred from the stored item tax amounts exactly as the edit
form does it (quotations.services.reconcile). Totals are never rewritten;
rows whose total_amount differs from the sum of their line totals are
reported only.

Usage:
    python manage.py backfill_tax_mode
    python manage.py backfill_tax_mode --dry-run --verbose
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from quotations.models import Quotation
from quotations.services.reconcile import reconcile_tax_mode
from quotations.services.totals import ZERO, money


class Command(BaseCommand):
    help = "Infer and store tax_mode for quotations that have none"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would change without saving",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Print one line per quotation",
        )

    def handle(self, *args, **options):
        dry_run = options.get("dry_run", False)
        verbose = options.get("verbose", False)

        qs = Quotation.objects.filter(tax_mode__isnull=True).prefetch_related("items").order_by("id")
        updated = 0
        mismatched = 0

        for quotation in qs.iterator(chunk_size=200):
            state = reconcile_tax_mode(quotation.stored_items(), quotation.gst_percent)
            mode = state.inferred_mode.value

            line_sum = money(sum((i.line_total for i in state.items), ZERO))
            if line_sum != quotation.total_amount:
                mismatched += 1
                self.stdout.write(self.style.WARNING(
                    f"#{quotation.id}: total_amount={quotation.total_amount} but line totals sum to {line_sum}"
                ))

            if verbose:
                self.stdout.write(f"#{quotation.id}: {len(state.items)} items -> {mode}")

            if not dry_run:
                with transaction.atomic():
                    Quotation.objects.filter(pk=quotation.pk, tax_mode__isnull=True).update(tax_mode=mode)
            updated += 1

        verb = "Would update" if dry_run else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} {updated} quotation(s); {mismatched} total mismatch(es)"))
