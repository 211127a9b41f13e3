# quotations/pdf.py
"""
A4 quotation document rendered with reportlab platypus.

Figures come straight from the stored rows (tax_amount, line_total,
total_amount); nothing is recomputed here.
"""
import io
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.utils import timezone
from django.utils.html import escape
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .services.logos import open_logo
from .services.totals import TaxMode, money

logger = logging.getLogger(__name__)

GOLD = colors.Color(182 / 255, 140 / 255, 40 / 255)
DARK = colors.HexColor("#1A1A1A")
GRID = colors.Color(180 / 255, 180 / 255, 180 / 255)

LOGO_BOX = 70


def format_inr(value) -> str:
    """1234567.5 -> '12,34,567.50' (Indian digit grouping, two decimals)."""
    try:
        amount = money(Decimal(str(value if value is not None else 0)))
    except InvalidOperation:
        amount = money(Decimal("0"))
    sign = "-" if amount < 0 else ""
    whole, frac = f"{abs(amount):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{frac}"


def _logo_flowable(name):
    raw = open_logo(name)
    if not raw:
        return None
    try:
        reader = ImageReader(io.BytesIO(raw))
        w, h = reader.getSize()
        scale = min(LOGO_BOX / float(w), LOGO_BOX / float(h))
        return Image(io.BytesIO(raw), width=w * scale, height=h * scale)
    except Exception:
        logger.warning("Skipping unreadable logo %s in PDF", name, exc_info=True)
        return None


def _percent(value) -> str:
    text = f"{money(Decimal(value)):f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def render_quotation_pdf(quotation) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.6 * inch,
        title=f"Quotation {quotation.pk}",
    )
    width = doc.width

    styles = getSampleStyleSheet()
    normal = styles["Normal"]
    brand_style = ParagraphStyle(
        "Brand", parent=styles["Title"], fontSize=22, leading=26, textColor=colors.white, alignment=0, spaceAfter=0
    )
    tagline_style = ParagraphStyle(
        "Tagline", parent=normal, fontName="Times-Italic", fontSize=13, textColor=colors.white
    )
    title_style = ParagraphStyle(
        "DocTitle", parent=styles["Title"], fontSize=26, textColor=GOLD, alignment=TA_CENTER, spaceAfter=10
    )
    right_bold = ParagraphStyle("RightBold", parent=normal, fontName="Helvetica-Bold", fontSize=11, alignment=TA_RIGHT)
    label_style = ParagraphStyle("Label", parent=normal, fontName="Helvetica-Bold", fontSize=12, spaceAfter=4)
    body_style = ParagraphStyle("Body", parent=normal, fontSize=12, leading=16)
    footer_style = ParagraphStyle(
        "Footer", parent=normal, fontName="Helvetica-Oblique", fontSize=10, textColor=colors.HexColor("#555555"),
        alignment=TA_CENTER,
    )

    brand = getattr(settings, "PDF_BRAND_NAME", "") or quotation.store_name
    tagline = getattr(settings, "PDF_TAGLINE", "")
    story = []

    # header bar
    brand_cell = [Paragraph(f"<b>{escape(brand)}</b>", brand_style)]
    if tagline:
        brand_cell.append(Paragraph(f"“{escape(tagline)}”", tagline_style))
    logo = _logo_flowable(quotation.logo.name) if quotation.logo else None
    if logo is not None:
        header = Table([[logo, brand_cell]], colWidths=[LOGO_BOX + 16, width - LOGO_BOX - 16])
    else:
        header = Table([[brand_cell]], colWidths=[width])
    header.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), GOLD),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 12),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
        ("LEFTPADDING", (0, 0), (-1, -1), 10),
    ]))
    story.append(header)
    story.append(Spacer(1, 0.2 * inch))

    # address on the left, date / validity on the right
    date = timezone.localtime(quotation.date) if timezone.is_aware(quotation.date) else quotation.date
    address = [Paragraph(escape(line), normal) for line in getattr(settings, "PDF_ADDRESS_LINES", [])]
    meta = [
        Paragraph(f"Date: {date:%d/%m/%Y}", right_bold),
        Paragraph(f"Validity: {escape(quotation.validity_period)}", right_bold),
        Paragraph(f"Quotation #: {quotation.pk}", right_bold),
    ]
    info = Table([[address or "", meta]], colWidths=[width * 0.6, width * 0.4])
    info.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP"), ("LEFTPADDING", (0, 0), (-1, -1), 0)]))
    story.append(info)
    story.append(Spacer(1, 0.25 * inch))

    story.append(Paragraph("<b>QUOTATION</b>", title_style))

    story.append(Paragraph("Bill To:", label_style))
    story.append(Paragraph(escape(quotation.customer_name), body_style))
    story.append(Paragraph(escape(quotation.store_name), body_style))
    story.append(Paragraph(f"Phone: {escape(quotation.phone_number)}", body_style))
    story.append(Spacer(1, 0.2 * inch))

    # items
    rows = [["S.No", "Description", "Qty", "Rate (Rs.)", "GST (Rs.)", "Amount (Rs.)"]]
    items = list(quotation.items.all())
    for idx, item in enumerate(items, start=1):
        rows.append([
            str(idx),
            Paragraph(escape(item.description or "-"), normal),
            str(item.quantity),
            format_inr(item.rate),
            format_inr(item.tax_amount),
            format_inr(item.line_total),
        ])
    table = Table(
        rows,
        repeatRows=1,
        colWidths=[width * 0.08, width * 0.36, width * 0.08, width * 0.16, width * 0.15, width * 0.17],
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), GOLD),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 10),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 1), (-1, -1), 10),
        ("ALIGN", (0, 1), (0, -1), "CENTER"),
        ("ALIGN", (2, 1), (2, -1), "CENTER"),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, GRID),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#FBF7EC")]),
    ]))
    story.append(table)
    story.append(Spacer(1, 0.3 * inch))

    # totals
    if quotation.tax_mode == TaxMode.PER_ITEM.value:
        gst_label = "GST:"
    else:
        gst_label = f"GST ({_percent(quotation.gst_percent)}%):"
    totals = Table(
        [
            ["Subtotal:", f"Rs.{format_inr(quotation.subtotal)}"],
            [gst_label, f"Rs.{format_inr(quotation.tax_total)}"],
            ["GRAND TOTAL:", f"Rs.{format_inr(quotation.total_amount)}"],
        ],
        colWidths=[width * 0.5, width * 0.5],
    )
    totals.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 2, GOLD),
        ("FONTNAME", (0, 0), (-1, 1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, 1), 12),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("FONTSIZE", (0, 2), (-1, 2), 15),
        ("TEXTCOLOR", (0, 0), (-1, -1), DARK),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("LEFTPADDING", (0, 0), (-1, -1), 18),
        ("RIGHTPADDING", (0, 0), (-1, -1), 18),
        ("TOPPADDING", (0, 0), (-1, -1), 7),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 7),
    ]))
    story.append(totals)
    story.append(Spacer(1, 0.5 * inch))

    story.append(Paragraph(f"Thank you for choosing {escape(brand)}!", footer_style))

    doc.build(story)
    buf.seek(0)
    return buf.getvalue()


def pdf_filename(quotation) -> str:
    base = "_".join((quotation.customer_name or "Quotation").split())
    safe = "".join(ch for ch in base if ch.isalnum() or ch in "_-") or "Quotation"
    return f"{safe}_Quotation_{quotation.pk}.pdf"
