# common/api_mixins.py
from django.conf import settings
from rest_framework.response import Response


def _positive_int(raw, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


class PageListMixin:
    """
    page / page_size pagination used by the list endpoints:

        GET ...?page=2&page_size=10
        -> {"count": 42, "page": 2, "pages": 5, "page_size": 10, "results": [...]}

    page_size is capped at max_page_size; a page past the end returns an empty
    results list rather than a 404.
    """
    default_page_size = None
    max_page_size = None

    def get_page_params(self, request):
        default = self.default_page_size or getattr(settings, "QUOTATION_PAGE_SIZE", 10)
        cap = self.max_page_size or getattr(settings, "QUOTATION_MAX_PAGE_SIZE", 100)
        page_size = min(_positive_int(request.query_params.get("page_size") or request.query_params.get("limit"), default), cap)
        page = _positive_int(request.query_params.get("page"), 1)
        return page, page_size

    def list(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page, page_size = self.get_page_params(request)

        total = qs.count()
        start = (page - 1) * page_size
        rows = qs[start:start + page_size]
        ser = self.get_serializer(rows, many=True)
        return Response({
            "count": total,
            "page": page,
            "pages": (total + page_size - 1) // page_size,
            "page_size": page_size,
            "results": ser.data,
        })
