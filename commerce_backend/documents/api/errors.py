# documents/api/errors.py

from rest_framework.response import Response

from documents.services.exceptions import CommerceServiceError


def service_error_response(exc: CommerceServiceError) -> Response:
    """Domain error -> {"detail": ...} with the status the error carries."""
    return Response(
        {"detail": str(exc), "code": type(exc).__name__},
        status=exc.http_status,
    )


def request_actor(request) -> str:
    return getattr(request.user, "email", "") or ""
