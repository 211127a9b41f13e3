from django.test import TestCase, override_settings
from django.urls import reverse


@override_settings(CORS_ALLOWED_ORIGINS=["http://localhost:5173"])
class MiddlewareTests(TestCase):
    def test_preflight_for_allowed_origin(self):
        resp = self.client.options(
            "/api/v1/quotations/",
            HTTP_ORIGIN="http://localhost:5173",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Access-Control-Allow-Origin"], "http://localhost:5173")
        self.assertIn("PUT", resp["Access-Control-Allow-Methods"])

    def test_other_origins_get_no_cors_headers(self):
        resp = self.client.get("/api/v1/quotations/", HTTP_ORIGIN="http://evil.example")
        self.assertNotIn("Access-Control-Allow-Origin", resp)

    def test_every_request_is_logged(self):
        with self.assertLogs("quote_backend.requests", level="INFO") as logs:
            resp = self.client.get("/api/v1/quotations/")
        self.assertEqual(resp.status_code, 401)
        self.assertIn("GET /api/v1/quotations/ 401", logs.output[0])

    def test_api_responses_expose_content_disposition(self):
        resp = self.client.get("/api/v1/quotations/", HTTP_ORIGIN="http://localhost:5173")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp["Access-Control-Allow-Origin"], "http://localhost:5173")
        self.assertEqual(resp["Access-Control-Expose-Headers"], "Content-Disposition")


class UrlTests(TestCase):
    def test_routes(self):
        self.assertEqual(reverse("quotation-list"), "/api/v1/quotations/")
        self.assertEqual(reverse("quotation-preview"), "/api/v1/quotations/preview")
        self.assertEqual(reverse("quotation-detail", args=[3]), "/api/v1/quotations/3")
        self.assertEqual(reverse("quotation-pdf", args=[3]), "/api/v1/quotations/3/pdf")
        self.assertEqual(reverse("quotation-edit-state", args=[3]), "/api/v1/quotations/3/edit-state")
        self.assertEqual(reverse("auth-register"), "/api/v1/auth/register")
        self.assertEqual(reverse("token_obtain_pair"), "/api/v1/auth/token/")
        self.assertEqual(reverse("user-list"), "/api/v1/users/")
        self.assertEqual(reverse("otp-request"), "/api/v1/otp/request")
