from django.contrib import admin

from .models import Quotation, QuotationItem


class QuotationItemInline(admin.TabularInline):
    model = QuotationItem
    extra = 0
    fields = ("position", "description", "quantity", "rate", "tax_amount", "line_total")
    readonly_fields = ("tax_amount", "line_total")


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "customer_name",
        "store_name",
        "phone_number",
        "date",
        "gst_percent",
        "tax_mode",
        "total_amount",
        "created_by",
    )
    list_filter = ("tax_mode", "date")
    search_fields = ("customer_name", "store_name", "phone_number")
    readonly_fields = ("total_amount", "created_at", "updated_at")
    date_hierarchy = "date"
    inlines = [QuotationItemInline]
