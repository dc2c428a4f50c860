"""Error taxonomy shared by the helpdesk apps and its DRF rendering."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, List, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class HelpdeskError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None, errors: Optional[Iterable[str]] = None) -> None:
        self.message = message or self.default_message
        self.errors: List[str] = list(errors) if errors else [self.message]
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class NotAuthenticated(HelpdeskError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication is required."


class Forbidden(HelpdeskError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action."


class NotFound(HelpdeskError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class InvalidTransition(HelpdeskError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The ticket cannot move to the requested status."


class InvalidArgument(HelpdeskError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class ExternalIntegrationFailure(HelpdeskError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "The external system could not be reached."


def _flatten(detail: Any, field: str = "") -> Iterator[str]:
    if isinstance(detail, dict):
        for key, value in detail.items():
            nested = "" if key in {"detail", "non_field_errors"} else str(key)
            yield from _flatten(value, nested or field)
    elif isinstance(detail, (list, tuple)):
        for item in detail:
            yield from _flatten(item, field)
    else:
        text = str(detail)
        yield f"{field}: {text}" if field else text


def envelope(succeeded: bool, data: Any = None, errors: Iterable[str] = (), warnings: Iterable[str] = ()) -> dict:
    return {
        "succeeded": succeeded,
        "data": data,
        "errors": list(errors),
        "warnings": list(warnings),
    }


def envelope_exception_handler(exc: Exception, context: dict) -> Optional[Response]:
    """Render helpdesk and DRF errors in the response envelope."""

    if isinstance(exc, HelpdeskError):
        view = context.get("view")
        logger.info(
            "%s in %s: %s", exc.code, type(view).__name__ if view else "request", exc.message
        )
        return Response(envelope(False, errors=exc.errors), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None
    response.data = envelope(False, errors=list(_flatten(response.data)))
    return response
