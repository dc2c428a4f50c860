"""Uniform outcome of a command handled by the application layer."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional, Tuple

from rest_framework import status
from rest_framework.response import Response

from .errors import HelpdeskError, envelope


@dataclass(frozen=True)
class Result:
    succeeded: bool
    data: Any = None
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    status_code: int = status.HTTP_200_OK
    error_code: Optional[str] = None

    @classmethod
    def success(
        cls,
        data: Any = None,
        warnings: Iterable[str] = (),
        status_code: int = status.HTTP_200_OK,
    ) -> "Result":
        return cls(True, data=data, warnings=tuple(warnings), status_code=status_code)

    @classmethod
    def failure(
        cls,
        errors: Iterable[str],
        status_code: int = status.HTTP_400_BAD_REQUEST,
        error_code: Optional[str] = None,
    ) -> "Result":
        return cls(False, errors=tuple(errors), status_code=status_code, error_code=error_code)

    @classmethod
    def from_error(cls, error: HelpdeskError) -> "Result":
        return cls.failure(error.errors, status_code=error.status_code, error_code=error.code)

    def with_data(self, data: Any) -> "Result":
        return replace(self, data=data)

    def to_payload(self) -> dict:
        return envelope(self.succeeded, self.data, self.errors, self.warnings)

    def to_response(self) -> Response:
        return Response(self.to_payload(), status=self.status_code)
