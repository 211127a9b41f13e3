from django.urls import path

from .views import (
    QuotationDetailView,
    QuotationEditStateView,
    QuotationListCreateView,
    QuotationPdfView,
    QuotationPreviewView,
)

urlpatterns = [
    path("quotations/", QuotationListCreateView.as_view(), name="quotation-list"),
    path("quotations/preview", QuotationPreviewView.as_view(), name="quotation-preview"),
    path("quotations/<int:pk>", QuotationDetailView.as_view(), name="quotation-detail"),
    path("quotations/<int:pk>/edit-state", QuotationEditStateView.as_view(), name="quotation-edit-state"),
    path("quotations/<int:pk>/pdf", QuotationPdfView.as_view(), name="quotation-pdf"),
]
