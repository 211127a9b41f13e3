from django.contrib import admin

from .models import OtpAudit, OtpConfig, OtpRequest


@admin.register(OtpRequest)
class OtpRequestAdmin(admin.ModelAdmin):
    list_display = ("created_at", "email", "purpose", "attempts", "is_used", "expires_at")
    list_filter = ("purpose", "is_used")
    search_fields = ("email",)
    exclude = ("code_hash", "salt")
    readonly_fields = ("email", "purpose", "expires_at", "attempts", "ip_address", "user_agent", "created_at")


@admin.register(OtpConfig)
class OtpConfigAdmin(admin.ModelAdmin):
    list_display = ("__str__", "is_active", "send_per_email", "send_per_ip", "verify_per_email")
    fieldsets = (
        (None, {"fields": ("is_active",)}),
        ("Sending", {"fields": (("send_per_email", "send_email_window"), ("send_per_ip", "send_ip_window"))}),
        ("Verifying", {"fields": (("verify_per_email", "verify_email_window"),)}),
    )


@admin.register(OtpAudit)
class OtpAuditAdmin(admin.ModelAdmin):
    list_display = ("created_at", "email", "purpose", "reason")
    list_filter = ("purpose", "reason")
    search_fields = ("email",)
    date_hierarchy = "created_at"
