# balances/api/views.py

"""
PATH: balances/api/views.py

BALANCES & AGING API (READ-ONLY)

GET /api/balances/customers/?counterparty=<uuid>&date=YYYY-MM-DD
GET /api/balances/suppliers/?counterparty=<uuid>&date=YYYY-MM-DD
GET /api/balances/<customers|suppliers>/<id>/statement/?date=YYYY-MM-DD

Requires balances.view. Reports are computed on demand, nothing is cached.
"""

from django.http import Http404
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from balances.api.serializers import BalanceQuerySerializer, BalanceReportSerializer
from balances.services.balance_service import (
    balances_total,
    compute_balances,
    counterparty_statement,
)
from documents.api.errors import service_error_response
from documents.services.exceptions import CommerceServiceError
from payments.models import Payment
from permissions.roles import CAP_BALANCES_VIEW, HasCapability, HasTenant, get_request_tenant


DIRECTIONS = {
    "customers": Payment.Direction.CUSTOMER,
    "suppliers": Payment.Direction.SUPPLIER,
}


def _direction_or_404(value):
    direction = DIRECTIONS.get(value)
    if direction is None:
        raise Http404("Unknown balance direction")
    return direction


class BalanceReportView(APIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {"GET": CAP_BALANCES_VIEW}
    direction = Payment.Direction.CUSTOMER

    @extend_schema(
        tags=["balances"],
        parameters=[
            OpenApiParameter("counterparty", str, description="Restrict to one counterparty (uuid)"),
            OpenApiParameter("date", str, description="Reference date YYYY-MM-DD (default today)"),
        ],
        responses={200: BalanceReportSerializer, 400: dict, 404: dict},
    )
    def get(self, request, *args, **kwargs):
        q = BalanceQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        reference_date = q.validated_data.get("date") or timezone.localdate()

        try:
            balances = compute_balances(
                tenant=get_request_tenant(request),
                direction=self.direction,
                counterparty_id=q.validated_data.get("counterparty"),
                reference_date=reference_date,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)

        return Response(
            {
                "reference_date": reference_date.isoformat(),
                "total": str(balances_total(balances)),
                "count": len(balances),
                "results": [b.as_dict() for b in balances],
            }
        )


class CustomerBalanceView(BalanceReportView):
    direction = Payment.Direction.CUSTOMER


class SupplierBalanceView(BalanceReportView):
    direction = Payment.Direction.SUPPLIER


class CounterpartyStatementView(APIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {"GET": CAP_BALANCES_VIEW}

    @extend_schema(
        tags=["balances"],
        parameters=[OpenApiParameter("date", str, description="Statement date YYYY-MM-DD (default today)")],
        responses={200: dict, 404: dict},
    )
    def get(self, request, direction, pk, *args, **kwargs):
        q = BalanceQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)

        try:
            statement = counterparty_statement(
                tenant=get_request_tenant(request),
                direction=_direction_or_404(direction),
                counterparty_id=pk,
                reference_date=q.validated_data.get("date"),
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)

        return Response(statement)
