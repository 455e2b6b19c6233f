# payments/api/views.py

"""
PATH: payments/api/views.py

PAYMENTS API

GET    /api/payments/          payments.view   (filters: direction, customer, supplier, invoice, dates)
POST   /api/payments/          payments.edit   -> allocator.apply_payment
GET    /api/payments/<id>/     payments.view
PUT    /api/payments/<id>/     payments.edit   -> allocator.edit_payment (lines replaced)
DELETE /api/payments/<id>/     payments.edit   -> allocator.delete_payment (effects reversed)
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from documents.api.errors import request_actor, service_error_response
from documents.services.exceptions import CommerceServiceError
from payments.api.filters import PaymentFilter
from payments.api.serializers import (
    PaymentCreateSerializer,
    PaymentEditSerializer,
    PaymentSerializer,
)
from payments.models import Payment
from payments.services.allocation import (
    apply_payment,
    delete_payment,
    edit_payment,
    get_payment,
)
from permissions.roles import (
    CAP_PAYMENTS_EDIT,
    CAP_PAYMENTS_VIEW,
    HasCapability,
    HasTenant,
    get_request_tenant,
)


class PaymentListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {"GET": CAP_PAYMENTS_VIEW, "POST": CAP_PAYMENTS_EDIT}
    serializer_class = PaymentCreateSerializer
    filterset_class = PaymentFilter

    def get_queryset(self):
        return (
            Payment.objects.filter(tenant=get_request_tenant(self.request))
            .prefetch_related("lines")
            .order_by("-payment_date", "-created_at")
        )

    @extend_schema(tags=["payments"], responses=PaymentSerializer(many=True))
    def get(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(PaymentSerializer(page, many=True).data)
        return Response(PaymentSerializer(qs, many=True).data)

    @extend_schema(
        tags=["payments"],
        request=PaymentCreateSerializer,
        responses={201: PaymentSerializer, 400: dict, 404: dict, 409: dict},
    )
    def post(self, request, *args, **kwargs):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            payment = apply_payment(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                **s.validated_data,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)

        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class PaymentDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {
        "GET": CAP_PAYMENTS_VIEW,
        "PUT": CAP_PAYMENTS_EDIT,
        "DELETE": CAP_PAYMENTS_EDIT,
    }
    serializer_class = PaymentEditSerializer

    @extend_schema(tags=["payments"], responses={200: PaymentSerializer, 404: dict})
    def get(self, request, pk, *args, **kwargs):
        try:
            payment = get_payment(tenant=get_request_tenant(request), payment_id=pk)
        except CommerceServiceError as exc:
            return service_error_response(exc)
        return Response(PaymentSerializer(payment).data)

    @extend_schema(
        tags=["payments"],
        request=PaymentEditSerializer,
        responses={200: PaymentSerializer, 400: dict, 404: dict},
    )
    def put(self, request, pk, *args, **kwargs):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            payment = edit_payment(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                payment_id=pk,
                **s.validated_data,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)

        return Response(PaymentSerializer(payment).data)

    @extend_schema(tags=["payments"], responses={200: dict, 404: dict})
    def delete(self, request, pk, *args, **kwargs):
        try:
            result = delete_payment(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                payment_id=pk,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)
        return Response(result, status=status.HTTP_200_OK)
