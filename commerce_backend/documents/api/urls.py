# documents/api/urls.py

from django.urls import path

from documents.api.views import (
    DocumentCancelView,
    DocumentConvertView,
    DocumentDetailView,
    DocumentListCreateView,
    DocumentValidateView,
)


urlpatterns = [
    path("", DocumentListCreateView.as_view(), name="documents-list"),
    path("<uuid:pk>/", DocumentDetailView.as_view(), name="documents-detail"),
    path("<uuid:pk>/validate/", DocumentValidateView.as_view(), name="documents-validate"),
    path("<uuid:pk>/cancel/", DocumentCancelView.as_view(), name="documents-cancel"),
    path("<uuid:pk>/convert/", DocumentConvertView.as_view(), name="documents-convert"),
]
