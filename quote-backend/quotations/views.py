# quotations/views.py
from django.db.models import Prefetch, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from rest_framework import generics, parsers, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api_mixins import PageListMixin

from .models import Quotation, QuotationItem
from .pdf import pdf_filename, render_quotation_pdf
from .serializers import (
    QuotationListSerializer,
    QuotationPreviewSerializer,
    QuotationSerializer,
    QuotationWriteSerializer,
)
from .services.quotations import compute_for_request, delete_quotation, save_quotation
from .services.reconcile import reconcile_tax_mode, serialize_edit_state
from .services.totals import serialize_totals

UPLOAD_PARSERS = [parsers.JSONParser, parsers.MultiPartParser, parsers.FormParser]

ORDERING_FIELDS = {"date", "created_at", "total_amount", "customer_name", "store_name", "id"}


def _with_items(qs):
    return qs.prefetch_related(Prefetch("items", queryset=QuotationItem.objects.order_by("position", "id")))


class QuotationListCreateView(PageListMixin, generics.ListCreateAPIView):
    """
    GET  /api/v1/quotations/?page=&page_size=&search=&date_from=&date_to=&ordering=
    POST /api/v1/quotations/   (JSON, or multipart with a "logo" file and "items" as a JSON string)
    """
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = UPLOAD_PARSERS
    filter_backends = []

    def get_serializer_class(self):
        if self.request.method == "GET":
            return QuotationListSerializer
        return QuotationWriteSerializer

    def get_queryset(self):
        qs = Quotation.objects.all()
        params = self.request.query_params

        q = (params.get("search") or params.get("q") or "").strip()
        if q:
            qs = qs.filter(
                Q(customer_name__icontains=q)
                | Q(store_name__icontains=q)
                | Q(phone_number__icontains=q)
            )

        date_from = parse_date(params.get("date_from") or "")
        date_to = parse_date(params.get("date_to") or "")
        if date_from:
            qs = qs.filter(date__date__gte=date_from)
        if date_to:
            qs = qs.filter(date__date__lte=date_to)

        ordering = (params.get("ordering") or "").strip()
        if ordering.lstrip("-") in ORDERING_FIELDS:
            return qs.order_by(ordering, "-id")
        return qs.order_by("-created_at", "-id")

    def create(self, request, *args, **kwargs):
        ser = QuotationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quotation = save_quotation(ser.validated_data, user=request.user)
        quotation = _with_items(Quotation.objects.all()).get(pk=quotation.pk)
        return Response(
            QuotationSerializer(quotation, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )


class QuotationDetailView(generics.GenericAPIView):
    """
    GET    /api/v1/quotations/<id>
    PUT    /api/v1/quotations/<id>   full replace of header, items and totals
    PATCH  /api/v1/quotations/<id>   same as PUT
    DELETE /api/v1/quotations/<id>
    """
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = UPLOAD_PARSERS
    serializer_class = QuotationSerializer

    def get_queryset(self):
        return _with_items(Quotation.objects.all())

    def get(self, request, pk):
        quotation = get_object_or_404(self.get_queryset(), pk=pk)
        return Response(QuotationSerializer(quotation, context={"request": request}).data)

    def put(self, request, pk):
        quotation = get_object_or_404(Quotation, pk=pk)
        ser = QuotationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        save_quotation(ser.validated_data, instance=quotation, user=request.user)
        quotation = get_object_or_404(self.get_queryset(), pk=pk)
        return Response(QuotationSerializer(quotation, context={"request": request}).data)

    def patch(self, request, pk):
        return self.put(request, pk)

    def delete(self, request, pk):
        quotation = get_object_or_404(Quotation, pk=pk)
        delete_quotation(quotation)
        return Response({"ok": True, "detail": "Quotation deleted"}, status=status.HTTP_200_OK)


class QuotationEditStateView(APIView):
    """
    GET /api/v1/quotations/<id>/edit-state
    Per-item tax rates reverse-derived from the stored tax amounts, plus the
    tax mode the edit form should open in.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        quotation = get_object_or_404(_with_items(Quotation.objects.all()), pk=pk)
        state = reconcile_tax_mode(
            quotation.stored_items(),
            quotation.gst_percent,
            stored_mode=quotation.tax_mode,
        )
        data = serialize_edit_state(state)
        data["id"] = quotation.pk
        return Response(data)


class QuotationPdfView(APIView):
    """
    GET /api/v1/quotations/<id>/pdf
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        quotation = get_object_or_404(_with_items(Quotation.objects.all()), pk=pk)
        content = render_quotation_pdf(quotation)
        resp = HttpResponse(content, content_type="application/pdf")
        resp["Content-Disposition"] = f'attachment; filename="{pdf_filename(quotation)}"'
        return resp


class QuotationPreviewView(APIView):
    """
    POST /api/v1/quotations/preview  {tax_mode?, gst_percent?, items: [...]}
    Runs the same pricing as create/update without saving anything.
    """
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = UPLOAD_PARSERS

    def post(self, request):
        ser = QuotationPreviewSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        totals = compute_for_request(
            ser.validated_data.get("items") or [],
            tax_mode=ser.validated_data.get("tax_mode"),
            gst_percent=ser.validated_data.get("gst_percent"),
        )
        return Response({"ok": True, "totals": serialize_totals(totals)})
