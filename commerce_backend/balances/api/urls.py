# balances/api/urls.py

from django.urls import path

from balances.api.views import CounterpartyStatementView, CustomerBalanceView, SupplierBalanceView


urlpatterns = [
    path("customers/", CustomerBalanceView.as_view(), name="balances-customers"),
    path("suppliers/", SupplierBalanceView.as_view(), name="balances-suppliers"),
    path(
        "<str:direction>/<uuid:pk>/statement/",
        CounterpartyStatementView.as_view(),
        name="balances-statement",
    ),
]
