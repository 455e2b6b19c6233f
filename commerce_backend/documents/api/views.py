# documents/api/views.py

"""
PATH: documents/api/views.py

COMMERCIAL DOCUMENTS API

GET    /api/documents/                  documents.view     (filters: kind, status, date_from, date_to, search)
POST   /api/documents/                  documents.edit
GET    /api/documents/<id>/             documents.view
PATCH  /api/documents/<id>/             documents.edit
DELETE /api/documents/<id>/             documents.edit
POST   /api/documents/<id>/validate/    documents.validate
POST   /api/documents/<id>/cancel/      documents.validate
POST   /api/documents/<id>/convert/     documents.convert   (internal invoice -> invoice)

Tenant comes from the authenticated user; services own every rule, views
only translate payloads and domain errors.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from documents.api.errors import request_actor, service_error_response
from documents.api.filters import DocumentFilter
from documents.api.serializers import (
    DocumentCreateSerializer,
    DocumentSerializer,
    DocumentUpdateSerializer,
)
from documents.models import CommercialDocument
from documents.services.conversion import convert_provisional_to_official
from documents.services.document_service import (
    cancel_document,
    create_document,
    delete_document,
    get_document,
    update_document,
    validate_document,
)
from documents.services.exceptions import CommerceServiceError
from permissions.roles import (
    CAP_DOCUMENTS_CONVERT,
    CAP_DOCUMENTS_EDIT,
    CAP_DOCUMENTS_VALIDATE,
    CAP_DOCUMENTS_VIEW,
    HasCapability,
    HasTenant,
    get_request_tenant,
)


class DocumentListCreateView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {"GET": CAP_DOCUMENTS_VIEW, "POST": CAP_DOCUMENTS_EDIT}
    serializer_class = DocumentCreateSerializer
    filterset_class = DocumentFilter

    def get_queryset(self):
        return (
            CommercialDocument.objects.filter(tenant=get_request_tenant(self.request))
            .select_related("customer", "supplier")
            .prefetch_related("lines", "linked_documents")
        )

    @extend_schema(tags=["documents"], responses=DocumentSerializer(many=True))
    def get(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(DocumentSerializer(page, many=True).data)
        return Response(DocumentSerializer(qs, many=True).data)

    @extend_schema(
        tags=["documents"],
        request=DocumentCreateSerializer,
        responses={201: DocumentSerializer, 400: dict, 404: dict, 409: dict},
    )
    def post(self, request, *args, **kwargs):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            document = create_document(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                **s.validated_data,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)

        return Response(DocumentSerializer(document).data, status=status.HTTP_201_CREATED)


class DocumentDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    required_capability = {
        "GET": CAP_DOCUMENTS_VIEW,
        "PATCH": CAP_DOCUMENTS_EDIT,
        "DELETE": CAP_DOCUMENTS_EDIT,
    }
    serializer_class = DocumentUpdateSerializer

    @extend_schema(tags=["documents"], responses={200: DocumentSerializer, 404: dict})
    def get(self, request, pk, *args, **kwargs):
        try:
            document = get_document(tenant=get_request_tenant(request), document_id=pk)
        except CommerceServiceError as exc:
            return service_error_response(exc)
        return Response(DocumentSerializer(document).data)

    @extend_schema(
        tags=["documents"],
        request=DocumentUpdateSerializer,
        responses={200: DocumentSerializer, 400: dict, 404: dict, 409: dict},
    )
    def patch(self, request, pk, *args, **kwargs):
        s = self.get_serializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        changes = dict(s.validated_data)
        lines = changes.pop("lines", None)

        try:
            document = update_document(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                document_id=pk,
                changes=changes,
                lines=lines,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)

        return Response(DocumentSerializer(document).data)

    @extend_schema(tags=["documents"], responses={204: None, 404: dict, 409: dict})
    def delete(self, request, pk, *args, **kwargs):
        try:
            delete_document(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                document_id=pk,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class _DocumentActionView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasTenant, HasCapability]
    serializer_class = DocumentSerializer
    action_status = status.HTTP_200_OK

    def perform(self, *, tenant, actor, pk):
        raise NotImplementedError

    def post(self, request, pk, *args, **kwargs):
        try:
            document = self.perform(
                tenant=get_request_tenant(request),
                actor=request_actor(request),
                pk=pk,
            )
        except CommerceServiceError as exc:
            return service_error_response(exc)
        return Response(DocumentSerializer(document).data, status=self.action_status)


@extend_schema(tags=["documents"], request=None, responses={200: DocumentSerializer, 404: dict, 409: dict})
class DocumentValidateView(_DocumentActionView):
    required_capability = {"POST": CAP_DOCUMENTS_VALIDATE}

    def perform(self, *, tenant, actor, pk):
        return validate_document(tenant=tenant, actor=actor, document_id=pk)


@extend_schema(tags=["documents"], request=None, responses={200: DocumentSerializer, 404: dict, 409: dict})
class DocumentCancelView(_DocumentActionView):
    required_capability = {"POST": CAP_DOCUMENTS_VALIDATE}

    def perform(self, *, tenant, actor, pk):
        return cancel_document(tenant=tenant, actor=actor, document_id=pk)


@extend_schema(tags=["documents"], request=None, responses={201: DocumentSerializer, 404: dict, 409: dict})
class DocumentConvertView(_DocumentActionView):
    required_capability = {"POST": CAP_DOCUMENTS_CONVERT}
    action_status = status.HTTP_201_CREATED

    def perform(self, *, tenant, actor, pk):
        return convert_provisional_to_official(tenant=tenant, actor=actor, provisional_id=pk)
