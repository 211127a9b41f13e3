# quotations/services/totals.py
"""
Line-item pricing and GST totals.

Pure functions only: no Django imports, no I/O. The create/update views, the
live preview endpoint and the management commands all go through
compute_quotation_totals() so the preview a user sees is exactly what gets
stored.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

DEFAULT_ITEM_TAX_PERCENT = Decimal("18")


def money(q: Decimal) -> Decimal:
    # ROUND_HALF_UP on Decimal rounds half away from zero
    return q.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_amount(value: Any) -> Decimal:
    """
    Coerce raw input (str, int, float, Decimal, None) to a non-negative finite Decimal.
    Anything unparseable, negative, NaN or infinite becomes 0. Never raises.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return ZERO
    try:
        d = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return ZERO
    if not d.is_finite() or d <= 0:
        return ZERO
    return d


def to_quantity(value: Any) -> int:
    """Quantities are whole units; fractional input is truncated."""
    return int(to_amount(value))


def taxable_value(quantity: Any, rate: Any) -> Decimal:
    return to_amount(quantity) * to_amount(rate)


def tax_amount(taxable: Any, tax_percent: Any) -> Decimal:
    return money(to_amount(taxable) * to_amount(tax_percent) / HUNDRED)


def line_total(taxable: Any, tax_amount_value: Any) -> Decimal:
    return money(to_amount(taxable)) + to_amount(tax_amount_value)


class TaxMode(str, Enum):
    GLOBAL = "GLOBAL"
    PER_ITEM = "PER_ITEM"

    @classmethod
    def parse(cls, value: Any, default: Optional["TaxMode"] = None) -> Optional["TaxMode"]:
        """Accepts GLOBAL / PER_ITEM as well as the form spellings "global" and "per-item"."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper().replace("-", "_")
        if raw == "PERITEM":
            raw = "PER_ITEM"
        try:
            return cls(raw)
        except ValueError:
            return default


@dataclass
class ItemIn:
    description: str = ""
    quantity: Any = 0
    rate: Any = 0
    # None means "not supplied" (new row in the form, or a global-mode payload)
    tax_rate_percent: Any = None


@dataclass
class LineItem:
    description: str
    quantity: int
    rate: Decimal
    tax_rate_percent: Decimal
    tax_amount: Decimal
    line_total: Decimal

    @property
    def taxable(self) -> Decimal:
        return taxable_value(self.quantity, self.rate)


@dataclass
class QuotationTotals:
    tax_mode: TaxMode
    global_tax_percent: Decimal
    subtotal: Decimal
    tax_total: Decimal
    grand_total: Decimal
    items: List[LineItem] = field(default_factory=list)


def resolve_tax_percent(
    item: ItemIn,
    tax_mode: TaxMode,
    global_tax_percent: Any,
    default_tax_percent: Any = DEFAULT_ITEM_TAX_PERCENT,
) -> Decimal:
    if tax_mode == TaxMode.GLOBAL:
        return to_amount(global_tax_percent)
    if item.tax_rate_percent is None or item.tax_rate_percent == "":
        return to_amount(default_tax_percent)
    return to_amount(item.tax_rate_percent)


def normalize_item(
    item: ItemIn,
    tax_mode: TaxMode,
    global_tax_percent: Any,
    default_tax_percent: Any = DEFAULT_ITEM_TAX_PERCENT,
) -> LineItem:
    """
    Coerce one raw item and recompute its tax amount and line total.
    Client-supplied tax_amount / line_total are never read.
    """
    quantity = to_quantity(item.quantity)
    rate = to_amount(item.rate)
    pct = resolve_tax_percent(item, tax_mode, global_tax_percent, default_tax_percent)

    taxable = taxable_value(quantity, rate)
    tax = tax_amount(taxable, pct)
    return LineItem(
        description=(item.description or "").strip(),
        quantity=quantity,
        rate=rate,
        tax_rate_percent=pct,
        tax_amount=tax,
        line_total=line_total(taxable, tax),
    )


def compute_quotation_totals(
    items: Iterable[ItemIn],
    tax_mode: TaxMode,
    global_tax_percent: Any,
    default_tax_percent: Any = DEFAULT_ITEM_TAX_PERCENT,
) -> QuotationTotals:
    """
    Recompute every item from scratch plus the document totals.

    Rounding is applied per line; grand_total is the sum of the rounded line
    totals, which is what the per-line display adds up to.
    """
    mode = TaxMode.parse(tax_mode, default=TaxMode.GLOBAL)
    lines = [normalize_item(i, mode, global_tax_percent, default_tax_percent) for i in items]

    subtotal = money(sum((l.taxable for l in lines), ZERO))
    tax_total = money(sum((l.tax_amount for l in lines), ZERO))
    grand_total = money(sum((l.line_total for l in lines), ZERO))

    return QuotationTotals(
        tax_mode=mode,
        global_tax_percent=to_amount(global_tax_percent),
        subtotal=subtotal,
        tax_total=tax_total,
        grand_total=grand_total,
        items=lines,
    )


def display_amount(value: Decimal) -> str:
    """Two decimals, unless that would hide digits the line was priced with."""
    rounded = money(value)
    return str(rounded if rounded == value else value)


def serialize_line(line: LineItem) -> Dict[str, Any]:
    return {
        "description": line.description,
        "quantity": line.quantity,
        "rate": display_amount(line.rate),
        "tax_rate_percent": display_amount(line.tax_rate_percent),
        "taxable": str(money(line.taxable)),
        "tax_amount": str(line.tax_amount),
        "line_total": str(line.line_total),
    }


def serialize_totals(totals: QuotationTotals) -> Dict[str, Any]:
    return {
        "tax_mode": totals.tax_mode.value,
        "gst_percent": display_amount(totals.global_tax_percent),
        "subtotal": str(totals.subtotal),
        "tax_total": str(totals.tax_total),
        "grand_total": str(totals.grand_total),
        "items": [serialize_line(l) for l in totals.items],
    }
