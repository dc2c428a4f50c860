"""The acting principal, passed explicitly into every command handler."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from helpdesk_service.errors import Forbidden, NotAuthenticated

from .models import User


@dataclass(frozen=True)
class RequestContext:
    user_id: Optional[int] = None
    company_id: Optional[int] = None
    customer_id: Optional[int] = None
    role: Optional[str] = None
    is_authenticated: bool = False

    @classmethod
    def from_user(cls, user: Any) -> "RequestContext":
        if user is None or not getattr(user, "is_authenticated", False):
            return cls()
        return cls(
            user_id=user.pk,
            company_id=user.company_id,
            customer_id=user.customer_id,
            role=user.role,
            is_authenticated=True,
        )

    @classmethod
    def from_request(cls, request: Any) -> "RequestContext":
        return cls.from_user(getattr(request, "user", None))

    @property
    def is_admin(self) -> bool:
        return self.role == User.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == User.CUSTOMER

    def require_company(self) -> int:
        """Return the tenant id, failing when the principal is incomplete."""

        if not self.is_authenticated or self.user_id is None or self.company_id is None:
            raise NotAuthenticated("You must be signed in to a company account.")
        if self.is_customer and self.customer_id is None:
            raise NotAuthenticated("Your account is not linked to a customer.")
        return self.company_id

    def require_admin(self) -> int:
        company_id = self.require_company()
        if not self.is_admin:
            raise Forbidden("Only administrators can perform this action.")
        return company_id
