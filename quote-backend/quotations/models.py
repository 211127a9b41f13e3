# quotations/models.py
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from .services.reconcile import StoredItem
from .services.totals import TaxMode, ZERO, money


class Quotation(models.Model):
    TAX_MODE_CHOICES = [
        (TaxMode.GLOBAL.value, "Global"),
        (TaxMode.PER_ITEM.value, "Per item"),
    ]

    customer_name = models.CharField(max_length=160)
    store_name = models.CharField(max_length=160)
    phone_number = models.CharField(max_length=16)
    validity_period = models.CharField(max_length=64)
    date = models.DateTimeField(default=timezone.now)

    # storage name of the uploaded logo (see quotations.services.logos)
    logo = models.ImageField(upload_to="quotations/logos/", blank=True, max_length=255)

    gst_percent = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("18.00"))
    # NULL for rows written before the mode was stored; those are inferred on edit
    tax_mode = models.CharField(max_length=10, choices=TAX_MODE_CHOICES, null=True, blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="quotations",
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["customer_name"], name="quotation_customer_idx"),
            models.Index(fields=["store_name"], name="quotation_store_idx"),
            models.Index(fields=["date"], name="quotation_date_idx"),
        ]

    def __str__(self):
        return f"Quotation #{self.id} - {self.customer_name} - {self.total_amount}"

    @property
    def subtotal(self) -> Decimal:
        return money(sum((money(i.quantity * i.rate) for i in self.items.all()), ZERO))

    @property
    def tax_total(self) -> Decimal:
        return money(sum((i.tax_amount for i in self.items.all()), ZERO))

    def stored_items(self):
        return [
            StoredItem(
                description=i.description,
                quantity=i.quantity,
                rate=i.rate,
                tax_amount=i.tax_amount,
                line_total=i.line_total,
            )
            for i in self.items.all()
        ]


class QuotationItem(models.Model):
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name="items")
    position = models.PositiveIntegerField(default=0)
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    rate = models.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    line_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.description} x {self.quantity}"
