# products/api/views.py

"""
PATH: products/api/views.py

STOCK LEDGER API (READ-ONLY)

GET /api/stock/movements/                 (filters: product, warehouse, movement_type, source_kind, source_id)
GET /api/stock/levels/<product_id>/       (?warehouse=<uuid>)

Movements are written by the stock synchronizer only; there is no
manual adjustment endpoint.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from permissions.roles import CAP_STOCK_VIEW, HasCapability, HasTenant, get_request_tenant
from products.api.filters import StockMovementFilter
from products.api.serializers import StockLevelSerializer, StockMovementSerializer
from products.models import Product, StockMovement, Warehouse
from products.services.stock_sync import stock_level


class StockMovementListView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {"GET": CAP_STOCK_VIEW}
    serializer_class = StockMovementSerializer
    filterset_class = StockMovementFilter

    def get_queryset(self):
        return (
            StockMovement.objects.filter(tenant=get_request_tenant(self.request))
            .select_related("product")
            .order_by("-date", "-created_at")
        )

    @extend_schema(tags=["stock"], responses=StockMovementSerializer(many=True))
    def get(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(qs, many=True).data)


class StockLevelView(APIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {"GET": CAP_STOCK_VIEW}

    @extend_schema(
        tags=["stock"],
        parameters=[OpenApiParameter("warehouse", str, description="Restrict to one warehouse (uuid)")],
        responses={200: StockLevelSerializer, 404: dict},
    )
    def get(self, request, product_id, *args, **kwargs):
        tenant = get_request_tenant(request)

        product = Product.objects.filter(tenant=tenant, pk=product_id).first()
        if product is None:
            return Response({"detail": "Product not found"}, status=status.HTTP_404_NOT_FOUND)

        warehouse = None
        warehouse_id = request.query_params.get("warehouse")
        if warehouse_id:
            try:
                warehouse = Warehouse.objects.filter(tenant=tenant, pk=warehouse_id).first()
            except DjangoValidationError:
                return Response({"detail": "Invalid warehouse id"}, status=status.HTTP_400_BAD_REQUEST)
            if warehouse is None:
                return Response({"detail": "Warehouse not found"}, status=status.HTTP_404_NOT_FOUND)

        payload = {
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "warehouse_id": warehouse.id if warehouse else None,
            "quantity": stock_level(tenant=tenant, product=product, warehouse=warehouse),
        }
        return Response(StockLevelSerializer(payload).data)
