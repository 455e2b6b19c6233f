# permissions/tests/test_roles.py

from types import SimpleNamespace

from django.test import SimpleTestCase
from rest_framework.test import APIRequestFactory

from permissions.roles import (
    ALL_CAPABILITIES,
    CAP_BALANCES_VIEW,
    CAP_DOCUMENTS_CONVERT,
    CAP_DOCUMENTS_EDIT,
    CAP_DOCUMENTS_VIEW,
    CAP_PAYMENTS_EDIT,
    CAP_STOCK_VIEW,
    ROLE_ACCOUNTANT,
    ROLE_SALES,
    ROLE_WAREHOUSE,
    HasCapability,
    HasTenant,
    effective_capabilities_for,
)


def _user(role=None, *, superuser=False, tenant=None, authenticated=True):
    return SimpleNamespace(
        role=role,
        is_superuser=superuser,
        is_authenticated=authenticated,
        tenant=tenant,
    )


class CapabilityMapTests(SimpleTestCase):
    def test_superuser_gets_everything(self):
        self.assertEqual(effective_capabilities_for(None, _user(superuser=True)), ALL_CAPABILITIES)

    def test_unknown_role_gets_nothing(self):
        self.assertEqual(effective_capabilities_for(None, _user("intern")), set())

    def test_accountant_cannot_edit_documents(self):
        caps = effective_capabilities_for(None, _user(ROLE_ACCOUNTANT))
        self.assertNotIn(CAP_DOCUMENTS_EDIT, caps)
        self.assertIn(CAP_DOCUMENTS_CONVERT, caps)
        self.assertIn(CAP_PAYMENTS_EDIT, caps)

    def test_sales_sees_balances_but_not_stock(self):
        caps = effective_capabilities_for(None, _user(ROLE_SALES))
        self.assertIn(CAP_BALANCES_VIEW, caps)
        self.assertNotIn(CAP_STOCK_VIEW, caps)

    def test_warehouse_is_read_only(self):
        caps = effective_capabilities_for(None, _user(ROLE_WAREHOUSE))
        self.assertEqual(caps, {CAP_DOCUMENTS_VIEW, CAP_STOCK_VIEW})


class PermissionClassTests(SimpleTestCase):
    def setUp(self):
        self.factory = APIRequestFactory()

    def _request(self, method, user):
        request = getattr(self.factory, method.lower())("/")
        request.user = user
        return request

    def test_capability_per_method(self):
        view = SimpleNamespace(required_capability={"GET": CAP_DOCUMENTS_VIEW, "POST": CAP_DOCUMENTS_EDIT})
        user = _user(ROLE_WAREHOUSE)

        self.assertTrue(HasCapability().has_permission(self._request("GET", user), view))
        self.assertFalse(HasCapability().has_permission(self._request("POST", user), view))

    def test_unmapped_method_is_denied(self):
        view = SimpleNamespace(required_capability={"GET": CAP_DOCUMENTS_VIEW})
        request = self._request("DELETE", _user(superuser=True))

        self.assertFalse(HasCapability().has_permission(request, view))

    def test_anonymous_is_denied(self):
        view = SimpleNamespace(required_capability=CAP_DOCUMENTS_VIEW)
        request = self._request("GET", _user(superuser=True, authenticated=False))

        self.assertFalse(HasCapability().has_permission(request, view))

    def test_has_tenant_requires_an_active_tenant(self):
        view = SimpleNamespace()
        active = SimpleNamespace(is_active=True)
        inactive = SimpleNamespace(is_active=False)

        self.assertTrue(HasTenant().has_permission(self._request("GET", _user(tenant=active)), view))
        self.assertFalse(HasTenant().has_permission(self._request("GET", _user(tenant=inactive)), view))
        self.assertFalse(HasTenant().has_permission(self._request("GET", _user()), view))
