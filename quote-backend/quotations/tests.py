import json
from decimal import Decimal
from io import BytesIO, StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from PIL import Image
from rest_framework.test import APIRequestFactory, force_authenticate

from quotations.models import Quotation, QuotationItem
from quotations.pdf import format_inr
from quotations.services.logos import LogoError, prepare_logo
from quotations.services.quotations import save_quotation
from quotations.views import (
    QuotationDetailView,
    QuotationEditStateView,
    QuotationListCreateView,
    QuotationPdfView,
    QuotationPreviewView,
)

IN_MEMORY_STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.InMemoryStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}


def _png(width=400, height=300, name="logo.png"):
    buf = BytesIO()
    Image.new("RGB", (width, height), (200, 150, 40)).save(buf, format="PNG")
    return SimpleUploadedFile(name, buf.getvalue(), content_type="image/png")


def _payload(**overrides):
    data = {
        "customer_name": "Acme Traders",
        "store_name": "Acme Main Road",
        "phone_number": "9790034824",
        "validity_period": "30 days",
        "gst_percent": "18",
        "items": [
            {"description": "DVR 8 channel", "quantity": 1, "rate": "1000"},
            {"description": "Bullet camera", "quantity": 3, "rate": "50"},
        ],
    }
    data.update(overrides)
    return data


class QuotationApiTestBase(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.user = get_user_model().objects.create_user(
            username="owner@example.com",
            email="owner@example.com",
            password="test-pass",
        )

    def _post(self, view, path, data, fmt="json"):
        request = self.factory.post(path, data, format=fmt)
        force_authenticate(request, user=self.user)
        return view.as_view()(request)

    def _create(self, data=None, fmt="json"):
        return self._post(QuotationListCreateView, "/api/v1/quotations/", data or _payload(), fmt)

    def _get(self, view, path, **kwargs):
        request = self.factory.get(path, kwargs.pop("params", None))
        force_authenticate(request, user=self.user)
        return view.as_view()(request, **kwargs)


class QuotationCreateTests(QuotationApiTestBase):
    def test_create_global_quotation(self):
        resp = self._create()
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["total_amount"], "1357.00")
        self.assertEqual(resp.data["subtotal"], "1150.00")
        self.assertEqual(resp.data["tax_total"], "207.00")
        self.assertEqual(resp.data["tax_mode"], "GLOBAL")
        self.assertEqual([i["line_total"] for i in resp.data["items"]], ["1180.00", "177.00"])

        q = Quotation.objects.get(pk=resp.data["id"])
        self.assertEqual(q.created_by, self.user)
        self.assertEqual(q.items.count(), 2)
        self.assertEqual(q.total_amount, Decimal("1357.00"))

    def test_client_totals_are_ignored(self):
        data = _payload(
            total_amount="5",
            items=[{"description": "Camera", "quantity": 2, "rate": "100", "tax_amount": "999", "line_total": "1"}],
        )
        resp = self._create(data)
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["items"][0]["tax_amount"], "36.00")
        self.assertEqual(resp.data["items"][0]["line_total"], "236.00")
        self.assertEqual(resp.data["total_amount"], "236.00")

    def test_gst_defaults_to_eighteen(self):
        data = _payload()
        data.pop("gst_percent")
        resp = self._create(data)
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["gst_percent"], "18.00")
        self.assertEqual(resp.data["total_amount"], "1357.00")

    def test_item_rate_without_mode_switches_to_per_item(self):
        data = _payload(items=[
            {"description": "Camera", "quantity": 2, "rate": "100", "tax_rate_percent": "12"},
            {"description": "Cable", "quantity": 1, "rate": "100"},
        ])
        resp = self._create(data)
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["tax_mode"], "PER_ITEM")
        # the row without its own rate keeps the document gst_percent
        self.assertEqual([i["tax_amount"] for i in resp.data["items"]], ["24.00", "18.00"])
        self.assertEqual(resp.data["total_amount"], "342.00")

    def test_global_mode_ignores_item_rates(self):
        data = _payload(tax_mode="global", items=[
            {"description": "Camera", "quantity": 2, "rate": "100", "tax_rate_percent": "5"},
        ])
        resp = self._create(data)
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["items"][0]["tax_amount"], "36.00")

    def test_accepts_camel_case_fields(self):
        data = {
            "modelName": "Ravi",
            "storeName": "Ravi Electricals",
            "phoneNumber": "9876543210",
            "validity": "15",
            "gstPercent": 12,
            "items": [{"productDescription": "Camera", "quantity": 1, "rate": 1000}],
        }
        resp = self._create(data)
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["customer_name"], "Ravi")
        self.assertEqual(resp.data["validity_period"], "15")
        self.assertEqual(resp.data["items"][0]["description"], "Camera")
        self.assertEqual(resp.data["total_amount"], "1120.00")

    def test_multipart_items_as_json_string(self):
        data = _payload()
        data["items"] = json.dumps(data["items"])
        resp = self._create(data, fmt="multipart")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["total_amount"], "1357.00")

    def test_quantity_below_one_is_rejected(self):
        for qty in (0, -1):
            with self.subTest(qty=qty):
                resp = self._create(_payload(items=[{"description": "Camera", "quantity": qty, "rate": "10"}]))
                self.assertEqual(resp.status_code, 400)
                self.assertIn("quantity", resp.data["items"][0])
        self.assertEqual(Quotation.objects.count(), 0)

    def test_negative_rate_and_tax_rate_are_rejected(self):
        resp = self._create(_payload(items=[{"description": "Camera", "quantity": 1, "rate": "-1"}]))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("rate", resp.data["items"][0])

        resp = self._create(_payload(items=[
            {"description": "Camera", "quantity": 1, "rate": "1", "tax_rate_percent": "-5"},
        ]))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("tax_rate_percent", resp.data["items"][0])

    def test_amounts_beyond_column_limits_are_rejected(self):
        resp = self._create(_payload(items=[
            {"description": "Server rack", "quantity": 100, "rate": "9999999999.99"},
        ]))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["items"], ["Item 1: tax amount exceeds 9999999999.99."])

        big = {"description": "Server rack", "quantity": 100, "rate": "9999999999.99"}
        resp = self._create(_payload(gst_percent="0", items=[big, big]))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["non_field_errors"], ["Quotation total exceeds 999999999999.99."])

        resp = self._create(_payload(items=[{"description": "Cable", "quantity": 1000001, "rate": "1"}]))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("quantity", resp.data["items"][0])

        self.assertEqual(Quotation.objects.count(), 0)
        list_resp = self._get(QuotationListCreateView, "/api/v1/quotations/")
        self.assertEqual(list_resp.status_code, 200)

    def test_malformed_items_payload(self):
        for bad in ("not json", '{"description": "x"}', {"description": "x"}, ["x"]):
            with self.subTest(bad=bad):
                resp = self._create(_payload(items=bad))
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.data["items"], ["Invalid items format"])

    def test_empty_items_rejected(self):
        resp = self._create(_payload(items=[]))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("items", resp.data)

    def test_missing_text_fields_and_bad_phone(self):
        data = _payload(customer_name="", phone_number="12345")
        data.pop("store_name")
        resp = self._create(data)
        self.assertEqual(resp.status_code, 400)
        self.assertIn("customer_name", resp.data)
        self.assertIn("store_name", resp.data)
        self.assertIn("phone_number", resp.data)

    def test_requires_authentication(self):
        request = self.factory.post("/api/v1/quotations/", _payload(), format="json")
        resp = QuotationListCreateView.as_view()(request)
        self.assertEqual(resp.status_code, 401)


class QuotationPreviewTests(QuotationApiTestBase):
    def test_preview_matches_persisted_totals(self):
        items = [
            {"description": "Camera", "quantity": 3, "rate": "149.99", "tax_rate_percent": "12"},
            {"description": "Hard disk", "quantity": 1, "rate": "3499.50", "tax_rate_percent": "18"},
        ]
        preview = self._post(
            QuotationPreviewView,
            "/api/v1/quotations/preview",
            {"tax_mode": "PER_ITEM", "gst_percent": "18", "items": items},
        )
        self.assertEqual(preview.status_code, 200, preview.data)
        self.assertTrue(preview.data["ok"])

        created = self._create(_payload(tax_mode="PER_ITEM", items=items))
        self.assertEqual(created.status_code, 201, created.data)
        self.assertEqual(preview.data["totals"]["grand_total"], created.data["total_amount"])
        self.assertEqual(
            [i["line_total"] for i in preview.data["totals"]["items"]],
            [i["line_total"] for i in created.data["items"]],
        )

    def test_preview_is_lenient_and_saves_nothing(self):
        resp = self._post(
            QuotationPreviewView,
            "/api/v1/quotations/preview",
            {"gst_percent": "18", "items": [
                {"quantity": "abc", "rate": "100"},
                {"quantity": 2, "rate": "-5"},
                {"quantity": 1, "rate": "100"},
            ]},
        )
        self.assertEqual(resp.status_code, 200, resp.data)
        lines = resp.data["totals"]["items"]
        self.assertEqual([l["line_total"] for l in lines], ["0.00", "0.00", "118.00"])
        self.assertEqual(resp.data["totals"]["grand_total"], "118.00")
        self.assertEqual(Quotation.objects.count(), 0)

    def test_preview_rejects_unparseable_items(self):
        resp = self._post(QuotationPreviewView, "/api/v1/quotations/preview", {"items": "[oops"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["items"], ["Invalid items format"])


class QuotationListTests(QuotationApiTestBase):
    def setUp(self):
        super().setUp()
        for name in ("Acme Traders", "Beta Stores", "Acme Hardware"):
            self.assertEqual(self._create(_payload(customer_name=name)).status_code, 201)

    def test_paginates(self):
        resp = self._get(QuotationListCreateView, "/api/v1/quotations/", params={"page_size": 2})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 3)
        self.assertEqual(resp.data["pages"], 2)
        self.assertEqual(resp.data["page_size"], 2)
        self.assertEqual(len(resp.data["results"]), 2)

        resp = self._get(QuotationListCreateView, "/api/v1/quotations/", params={"page": 2, "page_size": 2})
        self.assertEqual(len(resp.data["results"]), 1)

        resp = self._get(QuotationListCreateView, "/api/v1/quotations/", params={"page": 9})
        self.assertEqual(resp.data["results"], [])

    def test_search_is_case_insensitive(self):
        resp = self._get(QuotationListCreateView, "/api/v1/quotations/", params={"search": "acme"})
        self.assertEqual(resp.data["count"], 2)
        self.assertEqual({r["customer_name"] for r in resp.data["results"]}, {"Acme Traders", "Acme Hardware"})

    def test_ordering_whitelist(self):
        resp = self._get(QuotationListCreateView, "/api/v1/quotations/", params={"ordering": "customer_name"})
        self.assertEqual(
            [r["customer_name"] for r in resp.data["results"]],
            ["Acme Hardware", "Acme Traders", "Beta Stores"],
        )
        # unknown fields fall back to the default ordering instead of erroring
        resp = self._get(QuotationListCreateView, "/api/v1/quotations/", params={"ordering": "phone_number; drop"})
        self.assertEqual(resp.status_code, 200)


class QuotationDetailTests(QuotationApiTestBase):
    def setUp(self):
        super().setUp()
        self.quotation_id = self._create().data["id"]

    def _detail(self, method, data=None):
        path = f"/api/v1/quotations/{self.quotation_id}"
        if method == "get":
            request = self.factory.get(path)
        else:
            request = getattr(self.factory, method)(path, data, format="json")
        force_authenticate(request, user=self.user)
        return QuotationDetailView.as_view()(request, pk=self.quotation_id)

    def test_get(self):
        resp = self._detail("get")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total_amount"], "1357.00")

    def test_get_missing_is_404(self):
        request = self.factory.get("/api/v1/quotations/999999")
        force_authenticate(request, user=self.user)
        resp = QuotationDetailView.as_view()(request, pk=999999)
        self.assertEqual(resp.status_code, 404)

    def test_put_replaces_items_and_totals(self):
        resp = self._detail("put", _payload(
            gst_percent="12",
            items=[{"description": "NVR", "quantity": 2, "rate": "2500"}],
        ))
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(len(resp.data["items"]), 1)
        self.assertEqual(resp.data["gst_percent"], "12.00")
        self.assertEqual(resp.data["total_amount"], "5600.00")
        self.assertEqual(QuotationItem.objects.filter(quotation_id=self.quotation_id).count(), 1)

    def test_patch_behaves_like_put(self):
        resp = self._detail("patch", _payload(items=[{"description": "NVR", "quantity": 1, "rate": "100"}]))
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["total_amount"], "118.00")

    def test_invalid_update_keeps_stored_record(self):
        resp = self._detail("put", _payload(items=[{"description": "NVR", "quantity": 0, "rate": "100"}]))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(Quotation.objects.get(pk=self.quotation_id).total_amount, Decimal("1357.00"))

    def test_delete(self):
        resp = self._detail("delete")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["ok"])
        self.assertFalse(Quotation.objects.filter(pk=self.quotation_id).exists())
        self.assertFalse(QuotationItem.objects.filter(quotation_id=self.quotation_id).exists())

    def test_delete_succeeds_when_logo_release_fails(self):
        Quotation.objects.filter(pk=self.quotation_id).update(logo="quotations/logos/gone.png")
        with mock.patch("quotations.services.logos.default_storage") as storage:
            storage.delete.side_effect = OSError("bucket unavailable")
            with self.assertLogs("quotations.services.logos", level="WARNING"):
                resp = self._detail("delete")
        self.assertEqual(resp.status_code, 200)
        storage.delete.assert_called_once_with("quotations/logos/gone.png")
        self.assertFalse(Quotation.objects.filter(pk=self.quotation_id).exists())


class QuotationEditStateTests(QuotationApiTestBase):
    def _legacy(self, items):
        q = Quotation.objects.create(
            customer_name="Old record",
            store_name="Old store",
            phone_number="9000000000",
            validity_period="30",
            gst_percent=Decimal("18"),
            total_amount=sum(Decimal(i[3]) for i in items),
        )
        for pos, (qty, rate, tax, total) in enumerate(items):
            QuotationItem.objects.create(
                quotation=q, position=pos, description=f"Item {pos}",
                quantity=qty, rate=Decimal(rate), tax_amount=Decimal(tax), line_total=Decimal(total),
            )
        return q

    def test_legacy_record_infers_per_item(self):
        q = self._legacy([(1, "100", "18.00", "118.00"), (2, "100", "24.00", "224.00")])
        resp = self._get(QuotationEditStateView, f"/api/v1/quotations/{q.pk}/edit-state", pk=q.pk)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["tax_mode"], "PER_ITEM")
        self.assertEqual(resp.data["mode_source"], "inferred")
        self.assertEqual([i["tax_rate_percent"] for i in resp.data["items"]], ["18.00", "12.00"])
        self.assertEqual([i["line_total"] for i in resp.data["items"]], ["118.00", "224.00"])

    def test_legacy_record_with_equal_rates_infers_global(self):
        q = self._legacy([(1, "1000", "180.00", "1180.00"), (3, "50", "27.00", "177.00")])
        resp = self._get(QuotationEditStateView, f"/api/v1/quotations/{q.pk}/edit-state", pk=q.pk)
        self.assertEqual(resp.data["tax_mode"], "GLOBAL")
        self.assertEqual(resp.data["gst_percent"], "18.00")

    def test_new_records_report_stored_mode(self):
        created = self._create(_payload(tax_mode="PER_ITEM", items=[
            {"description": "Camera", "quantity": 1, "rate": "100", "tax_rate_percent": "18"},
        ]))
        pk = created.data["id"]
        resp = self._get(QuotationEditStateView, f"/api/v1/quotations/{pk}/edit-state", pk=pk)
        self.assertEqual(resp.data["tax_mode"], "PER_ITEM")
        self.assertEqual(resp.data["inferred_mode"], "GLOBAL")
        self.assertEqual(resp.data["mode_source"], "stored")


class QuotationPdfTests(QuotationApiTestBase):
    def test_pdf_download(self):
        pk = self._create().data["id"]
        resp = self._get(QuotationPdfView, f"/api/v1/quotations/{pk}/pdf", pk=pk)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Content-Type"], "application/pdf")
        self.assertIn("attachment;", resp["Content-Disposition"])
        self.assertIn("Acme_Traders", resp["Content-Disposition"])
        self.assertTrue(resp.content.startswith(b"%PDF"))

    @override_settings(STORAGES=IN_MEMORY_STORAGES)
    def test_pdf_with_unreadable_logo_still_renders(self):
        pk = self._create().data["id"]
        default_storage.save("quotations/logos/broken.png", BytesIO(b"not an image"))
        Quotation.objects.filter(pk=pk).update(logo="quotations/logos/broken.png")
        with self.assertLogs("quotations.pdf", level="WARNING"):
            resp = self._get(QuotationPdfView, f"/api/v1/quotations/{pk}/pdf", pk=pk)
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.content.startswith(b"%PDF"))

    def test_format_inr(self):
        self.assertEqual(format_inr("1234567.5"), "12,34,567.50")
        self.assertEqual(format_inr(Decimal("1357")), "1,357.00")
        self.assertEqual(format_inr("999"), "999.00")
        self.assertEqual(format_inr(None), "0.00")


@override_settings(STORAGES=IN_MEMORY_STORAGES)
class QuotationLogoTests(QuotationApiTestBase):
    def _validated(self, **overrides):
        data = {
            "customer_name": "Acme Traders",
            "store_name": "Acme Main Road",
            "phone_number": "9790034824",
            "validity_period": "30 days",
            "gst_percent": Decimal("18"),
            "items": [{"description": "Camera", "quantity": 1, "rate": Decimal("100")}],
        }
        data.update(overrides)
        return data

    def test_upload_is_resized_and_stored(self):
        data = _payload()
        data["items"] = json.dumps(data["items"])
        data["logo"] = _png(400, 300)
        resp = self._create(data, fmt="multipart")
        self.assertEqual(resp.status_code, 201, resp.data)

        name = Quotation.objects.get(pk=resp.data["id"]).logo.name
        self.assertTrue(name.startswith("quotations/logos/"))
        self.assertTrue(default_storage.exists(name))
        with default_storage.open(name, "rb") as fh:
            self.assertEqual(Image.open(fh).size, (200, 150))
        self.assertTrue(resp.data["logo_url"])

    def test_rejects_non_image_upload(self):
        data = _payload()
        data["items"] = json.dumps(data["items"])
        data["logo"] = SimpleUploadedFile("logo.png", b"plain text", content_type="image/png")
        resp = self._create(data, fmt="multipart")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("logo", resp.data)

    @override_settings(LOGO_MAX_BYTES=100)
    def test_rejects_oversized_upload(self):
        with self.assertRaises(LogoError):
            prepare_logo(_png())

    def test_failed_write_removes_stored_logo(self):
        validated = self._validated(logo=prepare_logo(_png()))
        with mock.patch.object(QuotationItem.objects, "bulk_create", side_effect=DatabaseError("disk full")):
            with self.assertRaises(DatabaseError):
                save_quotation(validated, user=self.user)

        self.assertEqual(Quotation.objects.count(), 0)
        _dirs, files = default_storage.listdir("quotations/logos/")
        self.assertEqual(files, [])

    def test_update_releases_previous_logo(self):
        quotation = save_quotation(self._validated(logo=prepare_logo(_png(name="first.png"))), user=self.user)
        first = quotation.logo.name

        quotation = save_quotation(
            self._validated(logo=prepare_logo(_png(name="second.png"))),
            instance=quotation,
            user=self.user,
        )
        self.assertNotEqual(quotation.logo.name, first)
        self.assertFalse(default_storage.exists(first))
        self.assertTrue(default_storage.exists(quotation.logo.name))

    def test_update_without_logo_keeps_it(self):
        quotation = save_quotation(self._validated(logo=prepare_logo(_png())), user=self.user)
        name = quotation.logo.name
        quotation = save_quotation(self._validated(), instance=quotation, user=self.user)
        self.assertEqual(quotation.logo.name, name)
        self.assertTrue(default_storage.exists(name))


class BackfillTaxModeCommandTests(TestCase):
    def setUp(self):
        self.q = Quotation.objects.create(
            customer_name="Old record",
            store_name="Old store",
            phone_number="9000000000",
            validity_period="30",
            gst_percent=Decimal("18"),
            total_amount=Decimal("342.00"),
        )
        QuotationItem.objects.create(
            quotation=self.q, position=0, description="A", quantity=1,
            rate=Decimal("100"), tax_amount=Decimal("18.00"), line_total=Decimal("118.00"),
        )
        QuotationItem.objects.create(
            quotation=self.q, position=1, description="B", quantity=2,
            rate=Decimal("100"), tax_amount=Decimal("24.00"), line_total=Decimal("224.00"),
        )

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command("backfill_tax_mode", "--dry-run", stdout=out)
        self.q.refresh_from_db()
        self.assertIsNone(self.q.tax_mode)
        self.assertIn("Would update 1", out.getvalue())

    def test_backfill_stores_inferred_mode(self):
        out = StringIO()
        call_command("backfill_tax_mode", stdout=out)
        self.q.refresh_from_db()
        self.assertEqual(self.q.tax_mode, "PER_ITEM")
        self.assertIn("0 total mismatch", out.getvalue())
