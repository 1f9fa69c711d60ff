"""
Shared httpx plumbing for the backend registration and payment APIs.
"""

import logging
from typing import Any

import httpx

from app.api.workflow_base.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)


class BackendApiClient:
    """
    Thin JSON client for the backend API.

    The bearer token is injected at construction; nothing here reads
    credentials from ambient storage.
    """

    exception_class: type[ExternalServiceException] = ExternalServiceException

    def __init__(self, base_url: str, api_token: str | None = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _error(
        self,
        operation: str,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
    ) -> ExternalServiceException:
        return self.exception_class(operation, message, status_code, response)

    async def _request(
        self, method: str, path: str, operation: str, payload: dict[str, Any] | None = None
    ) -> Any:
        """
        Perform a request and return the decoded JSON body.

        Raises:
            ExternalServiceException subclass on HTTP errors, timeouts,
            transport failures and non-JSON bodies.
        """
        url = f"{self.base_url}{path}"
        logger.info(f"{operation}: {method} {url}")

        try:
            async with httpx.AsyncClient() as client:
                if method == "GET":
                    response = await client.get(url, headers=self._headers(), timeout=self.timeout)
                else:
                    response = await client.post(
                        url, headers=self._headers(), json=payload or {}, timeout=self.timeout
                    )
        except httpx.TimeoutException as e:
            logger.error(f"{operation} timed out")
            raise self._error(operation, "The request timed out. Please try again.") from e
        except httpx.HTTPError as e:
            logger.error(f"{operation} transport error: {e}")
            raise self._error(operation, "Could not reach the server. Please try again.") from e

        body = _decode_json(response)

        if response.status_code >= 400:
            message = f"HTTP {response.status_code}"
            if isinstance(body, dict):
                message = body.get("error") or body.get("message") or message
            logger.error(f"{operation} failed with status {response.status_code}: {message}")
            raise self._error(
                operation,
                str(message),
                status_code=response.status_code,
                response=body if isinstance(body, dict) else None,
            )

        if body is None:
            logger.error(f"{operation} returned a non-JSON body")
            raise self._error(operation, "Unexpected response from server.", response.status_code)

        return body


def _decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
