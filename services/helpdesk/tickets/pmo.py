"""Outbound client for the external PMO system."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class PmoForwarder:
    """Pushes approved tickets to a company's PMO endpoint.

    ``forward`` and ``check_connection`` report failures through their
    boolean result and ``last_error``; network errors are never raised.
    """

    def __init__(self, endpoint: str, api_key: str = "", timeout: Optional[float] = None) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.PMO_REQUEST_TIMEOUT
        self.last_error = ""

    @classmethod
    def for_company(cls, company) -> "PmoForwarder":
        return cls(company.pmo_api_endpoint, company.pmo_api_key)

    @staticmethod
    def build_payload(ticket) -> Dict[str, Any]:
        creator = ticket.created_by
        created_by = f"{creator.first_name} {creator.last_name}".strip() or creator.username
        return {
            "ticketNumber": ticket.ticket_number,
            "title": ticket.title,
            "description": ticket.description,
            "type": ticket.ticket_type.name,
            "category": ticket.category.name,
            "customer": ticket.customer.name,
            "createdBy": created_by,
            "createdAt": ticket.created_at.isoformat(),
            "formData": ticket.form_data or {},
        }

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def forward(self, ticket) -> bool:
        self.last_error = ""
        if not self.endpoint:
            self.last_error = "No PMO endpoint is configured."
            return False
        try:
            response = requests.post(
                self.endpoint,
                json=self.build_payload(ticket),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self.last_error = f"PMO request failed: {exc}"
            logger.warning("Forwarding ticket %s to PMO failed: %s", ticket.ticket_number, exc)
            return False

        if 200 <= response.status_code < 300:
            logger.info("Ticket %s forwarded to PMO", ticket.ticket_number)
            return True

        self.last_error = f"PMO endpoint responded with HTTP {response.status_code}"
        logger.warning(
            "PMO rejected ticket %s with HTTP %s", ticket.ticket_number, response.status_code
        )
        return False

    def check_connection(self) -> bool:
        url = self.endpoint.rstrip("/") + "/health"
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            self.last_error = f"PMO request failed: {exc}"
            logger.warning("PMO health check against %s failed: %s", url, exc)
            return False
        if 200 <= response.status_code < 300:
            return True
        self.last_error = f"PMO endpoint responded with HTTP {response.status_code}"
        logger.warning("PMO health check against %s returned HTTP %s", url, response.status_code)
        return False
