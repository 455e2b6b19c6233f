# documents/services/exceptions.py

"""
COMMERCE SERVICE ERRORS

Centralized domain errors for the document / stock / payment / balance engine.
Each error knows the HTTP status the API layer answers with.
"""


class CommerceServiceError(Exception):
    """Base exception for all engine failures."""

    http_status = 400


class NotFoundError(CommerceServiceError):
    """Document, payment, product or counterparty absent for the tenant."""

    http_status = 404


class AlreadyConvertedError(CommerceServiceError):
    """A provisional document already has an official counterpart."""

    http_status = 409


class DuplicateNumberError(CommerceServiceError):
    """Document number collision within (tenant, kind)."""

    http_status = 409


class ValidationFailedError(CommerceServiceError):
    """Missing required field, non-numeric or disallowed quantity/amount."""

    http_status = 400


class ImmutableStateError(CommerceServiceError):
    """Edit of a non-draft document, or a transition out of a terminal state."""

    http_status = 409


class InconsistentAllocationError(CommerceServiceError):
    """A payment line would push an invoice past its total."""

    http_status = 400
