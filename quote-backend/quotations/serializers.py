# quotations/serializers.py
import json
import re
from collections.abc import Mapping
from decimal import Decimal

from rest_framework import serializers
from rest_framework.fields import empty
from rest_framework.settings import api_settings

from .models import Quotation, QuotationItem
from .services.logos import LogoError, logo_url, prepare_logo
from .services.quotations import compute_for_request
from .services.totals import CENTS, TaxMode

# camelCase names posted by the web client
HEADER_ALIASES = {
    "customerName": "customer_name",
    "modelName": "customer_name",
    "storeName": "store_name",
    "phoneNumber": "phone_number",
    "validityPeriod": "validity_period",
    "validity": "validity_period",
    "gstPercent": "gst_percent",
    "taxMode": "tax_mode",
    "removeLogo": "remove_logo",
}
ITEM_ALIASES = {
    "productDescription": "description",
    "taxRatePercent": "tax_rate_percent",
    "gstPercent": "tax_rate_percent",
}
# computed server side, dropped if a client sends them
IGNORED_ITEM_KEYS = ("tax_amount", "taxAmount", "line_total", "lineTotal", "total")

PHONE_RE = re.compile(r"^\d{10}$")
MAX_ITEM_QUANTITY = 1_000_000


def _apply_aliases(data, aliases):
    out = dict(data)
    for alias, name in aliases.items():
        if alias in out:
            value = out.pop(alias)
            out.setdefault(name, value)
    return out


def _flatten(data):
    # QueryDict (multipart / form) -> plain dict holding the last value of each key
    if hasattr(data, "getlist"):
        return {key: data.get(key) for key in data.keys()}
    if not isinstance(data, Mapping):
        raise serializers.ValidationError(
            {api_settings.NON_FIELD_ERRORS_KEY: ["Invalid data. Expected a dictionary."]}
        )
    return dict(data)


def column_limit(model, name):
    """Largest value a DecimalField column can hold, e.g. 9999999999.99 for (12, 2)."""
    f = model._meta.get_field(name)
    return Decimal(10) ** (f.max_digits - f.decimal_places) - CENTS


def parse_items_payload(data):
    """
    Items arrive either as a list (JSON body) or as a JSON encoded string
    (multipart body next to the logo file). Returns a list of dicts with
    aliases applied; raises ValidationError("Invalid items format") otherwise.
    """
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            raise serializers.ValidationError("Invalid items format")
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise serializers.ValidationError("Invalid items format")

    rows = []
    for row in data:
        row = _apply_aliases(row, ITEM_ALIASES)
        for key in IGNORED_ITEM_KEYS:
            row.pop(key, None)
        rows.append(row)
    return rows


class ItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_ITEM_QUANTITY)
    rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    tax_rate_percent = serializers.DecimalField(
        max_digits=6, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class ItemsField(serializers.Field):
    default_error_messages = {
        "empty": "At least one item is required.",
    }

    def get_value(self, dictionary):
        return dictionary.get(self.field_name, empty)

    def to_internal_value(self, data):
        rows = parse_items_payload(data)
        if not rows:
            self.fail("empty")
        ser = ItemInputSerializer(data=rows, many=True)
        if not ser.is_valid():
            raise serializers.ValidationError(ser.errors)
        return [dict(row) for row in ser.validated_data]

    def to_representation(self, value):
        return value


class QuotationWriteSerializer(serializers.Serializer):
    """
    Input for create and update. Totals are never read from the payload;
    quotations.services.quotations recomputes them.
    """
    customer_name = serializers.CharField(max_length=160)
    store_name = serializers.CharField(max_length=160)
    phone_number = serializers.CharField(max_length=16)
    validity_period = serializers.CharField(max_length=64)
    date = serializers.DateTimeField(required=False, allow_null=True)
    gst_percent = serializers.DecimalField(
        max_digits=6, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    tax_mode = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    items = ItemsField()
    logo = serializers.FileField(required=False, allow_null=True)
    remove_logo = serializers.BooleanField(required=False, default=False)

    def to_internal_value(self, data):
        flat = _apply_aliases(_flatten(data), HEADER_ALIASES)
        # blank multipart values mean "not sent" for the optional fields
        for key in ("date", "gst_percent", "tax_mode", "logo"):
            if flat.get(key) == "":
                flat.pop(key)
        return super().to_internal_value(flat)

    def validate_phone_number(self, value):
        value = value.strip()
        if not PHONE_RE.match(value):
            raise serializers.ValidationError("Phone number must be exactly 10 digits.")
        return value

    def validate_tax_mode(self, value):
        if value in (None, ""):
            return None
        mode = TaxMode.parse(value)
        if mode is None:
            raise serializers.ValidationError("Tax mode must be GLOBAL or PER_ITEM.")
        return mode

    def validate_logo(self, value):
        if value is None:
            return None
        try:
            return prepare_logo(value)
        except LogoError as exc:
            raise serializers.ValidationError(str(exc))

    def validate(self, attrs):
        # computed amounts must fit their columns or the row cannot be read back
        totals = compute_for_request(
            attrs["items"], tax_mode=attrs.get("tax_mode"), gst_percent=attrs.get("gst_percent")
        )
        max_tax = column_limit(QuotationItem, "tax_amount")
        max_line = column_limit(QuotationItem, "line_total")
        errors = []
        for idx, line in enumerate(totals.items, start=1):
            if line.tax_amount > max_tax:
                errors.append(f"Item {idx}: tax amount exceeds {max_tax}.")
            elif line.line_total > max_line:
                errors.append(f"Item {idx}: line total exceeds {max_line}.")
        if errors:
            raise serializers.ValidationError({"items": errors})

        max_total = column_limit(Quotation, "total_amount")
        if totals.grand_total > max_total:
            raise serializers.ValidationError(f"Quotation total exceeds {max_total}.")
        return attrs


class QuotationPreviewSerializer(serializers.Serializer):
    """
    Live preview input. Numbers are not validated here: the totals engine
    coerces anything unusable to 0, the way the form shows a half-typed row.
    """
    tax_mode = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    gst_percent = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    items = serializers.JSONField(required=False, default=list)

    def to_internal_value(self, data):
        return super().to_internal_value(_apply_aliases(_flatten(data), HEADER_ALIASES))

    def validate_items(self, value):
        return parse_items_payload(value)


class QuotationItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuotationItem
        fields = ["id", "position", "description", "quantity", "rate", "tax_amount", "line_total"]


class QuotationListSerializer(serializers.ModelSerializer):
    logo_url = serializers.SerializerMethodField()

    class Meta:
        model = Quotation
        fields = [
            "id",
            "customer_name",
            "store_name",
            "phone_number",
            "validity_period",
            "date",
            "gst_percent",
            "tax_mode",
            "total_amount",
            "logo_url",
            "created_at",
        ]

    def get_logo_url(self, obj):
        return logo_url(obj.logo.name if obj.logo else "", self.context.get("request"))


class QuotationSerializer(QuotationListSerializer):
    items = QuotationItemSerializer(many=True, read_only=True)
    subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    tax_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    created_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta(QuotationListSerializer.Meta):
        fields = QuotationListSerializer.Meta.fields + [
            "items",
            "subtotal",
            "tax_total",
            "created_by",
            "updated_at",
        ]
