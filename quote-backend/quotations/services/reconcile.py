# quotations/services/reconcile.py
"""
Rebuild the editable tax state of a stored quotation.

Stored items only carry the tax amount that was charged, not the rate, and
rows written before Quotation.tax_mode existed do not record the mode either.
reconcile_tax_mode() reverse-derives each item's rate from its tax amount and,
when no mode was stored, infers one:

  * every item at the same derived rate  -> GLOBAL
  * any item differing from the first    -> PER_ITEM

Known limitation: a single-item quotation always infers GLOBAL, even if it
was saved per item. The two cases are indistinguishable from the stored data.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .totals import (
    HUNDRED,
    LineItem,
    TaxMode,
    line_total,
    money,
    serialize_line,
    taxable_value,
    to_amount,
    to_quantity,
)

MODE_SOURCE_STORED = "stored"
MODE_SOURCE_INFERRED = "inferred"


@dataclass
class StoredItem:
    description: str = ""
    quantity: Any = 0
    rate: Any = 0
    tax_amount: Any = 0
    line_total: Any = None


@dataclass
class EditState:
    items: List[LineItem]
    inferred_mode: TaxMode
    global_tax_percent: Decimal
    mode_source: str = MODE_SOURCE_INFERRED
    stored_mode: Optional[TaxMode] = None

    @property
    def tax_mode(self) -> TaxMode:
        return self.stored_mode or self.inferred_mode


def implied_tax_percent(quantity: Any, rate: Any, tax_amount_value: Any, fallback_percent: Any) -> Decimal:
    taxable = taxable_value(quantity, rate)
    if taxable > 0:
        return money(to_amount(tax_amount_value) / taxable * HUNDRED)
    # zero taxable (e.g. qty 0): nothing to divide by, use the document rate
    return money(to_amount(fallback_percent))


def infer_tax_mode(rates: List[Decimal]) -> TaxMode:
    if not rates:
        return TaxMode.GLOBAL
    first = rates[0]
    if any(r != first for r in rates[1:]):
        return TaxMode.PER_ITEM
    return TaxMode.GLOBAL


def reconcile_tax_mode(
    stored_items: Iterable[StoredItem],
    stored_gst_percent: Any,
    stored_mode: Any = None,
) -> EditState:
    """
    Never changes persisted values: tax_amount and line_total come back as
    stored (line_total is derived only when missing).
    """
    gst = to_amount(stored_gst_percent)
    items: List[LineItem] = []
    for s in stored_items:
        quantity = to_quantity(s.quantity)
        rate = to_amount(s.rate)
        tax = money(to_amount(s.tax_amount))
        total = (
            money(to_amount(s.line_total))
            if s.line_total is not None
            else line_total(taxable_value(quantity, rate), tax)
        )
        items.append(LineItem(
            description=s.description or "",
            quantity=quantity,
            rate=rate,
            tax_rate_percent=implied_tax_percent(quantity, rate, tax, gst),
            tax_amount=tax,
            line_total=total,
        ))

    mode = TaxMode.parse(stored_mode)
    return EditState(
        items=items,
        inferred_mode=infer_tax_mode([i.tax_rate_percent for i in items]),
        global_tax_percent=gst,
        mode_source=MODE_SOURCE_STORED if mode else MODE_SOURCE_INFERRED,
        stored_mode=mode,
    )


def serialize_edit_state(state: EditState) -> Dict[str, Any]:
    return {
        "tax_mode": state.tax_mode.value,
        "inferred_mode": state.inferred_mode.value,
        "mode_source": state.mode_source,
        "gst_percent": str(money(state.global_tax_percent)),
        "items": [serialize_line(i) for i in state.items],
    }
