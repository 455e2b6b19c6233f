# payments/api/urls.py

from django.urls import path

from payments.api.views import PaymentDetailView, PaymentListCreateView


urlpatterns = [
    path("", PaymentListCreateView.as_view(), name="payments-list"),
    path("<uuid:pk>/", PaymentDetailView.as_view(), name="payments-detail"),
]
