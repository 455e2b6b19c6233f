# users/tests/test_me.py

from django.test import TestCase
from rest_framework.test import APIClient

from permissions.roles import CAP_DOCUMENTS_VIEW, CAP_STOCK_VIEW
from tenants.tests.factories import make_tenant, make_user
from users.models import User


class MeEndpointTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.user = make_user(self.tenant, role=User.Role.WAREHOUSE, email="stock@example.com")
        self.client = APIClient()

    def test_profile_with_capabilities(self):
        self.client.force_authenticate(user=self.user)

        res = self.client.get("/api/auth/me/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["email"], "stock@example.com")
        self.assertEqual(res.data["tenant_id"], self.tenant.id)
        self.assertEqual(res.data["capabilities"], sorted([CAP_DOCUMENTS_VIEW, CAP_STOCK_VIEW]))

    def test_jwt_login_then_me(self):
        res = self.client.post(
            "/api/auth/jwt/create/",
            {"email": "stock@example.com", "password": "password123"},
            format="json",
        )
        self.assertEqual(res.status_code, 200, res.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
        self.assertEqual(self.client.get("/api/auth/me/").status_code, 200)

    def test_requires_authentication(self):
        self.assertEqual(self.client.get("/api/auth/me/").status_code, 401)
