from django.contrib import admin

from .models import EmailLog, EmailTemplate


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ("name", "subject", "version", "is_active", "updated_at")
    list_editable = ("is_active",)
    search_fields = ("name", "subject")
    fields = ("name", "subject", "html_body", "locale", "version", "is_active")


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "to_address", "template", "status", "sent_at")
    list_filter = ("status", "template")
    list_select_related = ("template",)
    search_fields = ("to_address",)
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        # rows are written by emails.services only
        return False

    def has_change_permission(self, request, obj=None):
        return False
