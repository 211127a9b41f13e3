# quotations/services/quotations.py
import logging
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction

from ..models import Quotation, QuotationItem
from .logos import release_logo, store_logo
from .totals import ItemIn, QuotationTotals, TaxMode, compute_quotation_totals, to_amount

logger = logging.getLogger(__name__)

HEADER_FIELDS = ("customer_name", "store_name", "phone_number", "validity_period")


def default_gst_percent():
    return to_amount(getattr(settings, "DEFAULT_GST_PERCENT", "18"))


def default_item_tax_percent():
    return to_amount(getattr(settings, "DEFAULT_ITEM_TAX_PERCENT", "18"))


def build_items(raw_items: List[Dict[str, Any]]) -> List[ItemIn]:
    return [
        ItemIn(
            description=row.get("description", ""),
            quantity=row.get("quantity", 0),
            rate=row.get("rate", 0),
            tax_rate_percent=row.get("tax_rate_percent"),
        )
        for row in raw_items
    ]


def resolve_request_mode(items: List[ItemIn], tax_mode: Any, gst_percent: Any) -> Tuple[TaxMode, Any]:
    """
    Returns (mode, fallback rate for items without their own rate).

    An explicit PER_ITEM request falls back to DEFAULT_ITEM_TAX_PERCENT, the
    same default a freshly added form row gets. Without an explicit mode any
    item carrying its own rate switches the document to PER_ITEM and the rest
    keep the document gst_percent.
    """
    mode = TaxMode.parse(tax_mode)
    if mode is TaxMode.GLOBAL:
        return mode, gst_percent
    if mode is TaxMode.PER_ITEM:
        return mode, default_item_tax_percent()
    if any(i.tax_rate_percent not in (None, "") for i in items):
        return TaxMode.PER_ITEM, gst_percent
    return TaxMode.GLOBAL, gst_percent


def compute_for_request(raw_items, tax_mode=None, gst_percent=None) -> QuotationTotals:
    """Create, update and preview all price a payload through here."""
    gst = default_gst_percent() if gst_percent in (None, "") else gst_percent
    items = build_items(raw_items)
    mode, fallback = resolve_request_mode(items, tax_mode, gst)
    return compute_quotation_totals(items, mode, gst, fallback)


def _write_items(quotation: Quotation, totals: QuotationTotals) -> None:
    QuotationItem.objects.bulk_create([
        QuotationItem(
            quotation=quotation,
            position=idx,
            description=line.description,
            quantity=line.quantity,
            rate=line.rate,
            tax_amount=line.tax_amount,
            line_total=line.line_total,
        )
        for idx, line in enumerate(totals.items)
    ])


def save_quotation(validated: Dict[str, Any], instance: Optional[Quotation] = None, user=None) -> Quotation:
    """
    Create (instance=None) or fully replace a quotation from validated input.

    The logo is stored first and the row written in one transaction. If the
    write fails the freshly stored logo is deleted again; the previous logo of
    an updated quotation is released only after the write succeeded.
    """
    totals = compute_for_request(
        validated["items"],
        tax_mode=validated.get("tax_mode"),
        gst_percent=validated.get("gst_percent"),
    )

    new_logo = None
    if validated.get("logo") is not None:
        new_logo = store_logo(validated["logo"])
    old_logo = instance.logo.name if instance is not None and instance.logo else ""

    try:
        with transaction.atomic():
            quotation = instance or Quotation(created_by=user if user and user.is_authenticated else None)
            for name in HEADER_FIELDS:
                setattr(quotation, name, validated[name])
            if validated.get("date"):
                quotation.date = validated["date"]
            if new_logo:
                quotation.logo = new_logo
            elif validated.get("remove_logo"):
                quotation.logo = ""
            quotation.gst_percent = totals.global_tax_percent
            quotation.tax_mode = totals.tax_mode.value
            quotation.total_amount = totals.grand_total
            quotation.save()

            if instance is not None:
                quotation.items.all().delete()
            _write_items(quotation, totals)
    except Exception:
        if new_logo:
            logger.warning("Quotation write failed, removing stored logo %s", new_logo)
            release_logo(new_logo)
        raise

    if old_logo and (new_logo or validated.get("remove_logo")):
        release_logo(old_logo)

    logger.info(
        "Quotation %s %s: items=%d mode=%s total=%s",
        quotation.id,
        "updated" if instance is not None else "created",
        len(totals.items),
        totals.tax_mode.value,
        totals.grand_total,
    )
    return quotation


def delete_quotation(quotation: Quotation) -> None:
    """Delete the row, then try to release its logo. A failed release never fails the delete."""
    pk, logo = quotation.pk, quotation.logo.name if quotation.logo else ""
    quotation.delete()
    logger.info("Quotation %s deleted", pk)
    if logo:
        release_logo(logo)
