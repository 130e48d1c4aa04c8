"""
Vendor Video Client - Async HTTP submission and status queries against vendor APIs
"""

from typing import Any, Optional
import httpx

from shotgen.config.settings import settings
from shotgen.core.format_router import ProtocolVariant
from shotgen.core.request_builders import get_builder
from shotgen.core.status_parsers import get_status_parser
from shotgen.models.generation import VendorPayload
from shotgen.services.error_classifier import (
    ContentModerationError,
    ErrorClassifier,
    VendorError,
)
from shotgen.services.observability import logger


class VendorVideoClient:
    """
    HTTP client shared by every protocol variant

    One instance serves all groups; the credential is supplied per call so
    that rotation never requires a new client.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        """
        Initialize client

        Args:
            base_url: Vendor gateway base URL (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
            transport: Optional httpx transport (used by tests)
            classifier: Error classifier instance
        """
        self.base_url = (base_url or settings.vendor_base_url).rstrip("/")
        self.classifier = classifier or ErrorClassifier()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout or settings.request_timeout_s, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> "VendorVideoClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _auth_headers(self, credential: str) -> dict:
        return {"Authorization": f"Bearer {credential}"}

    async def submit(
        self,
        variant: ProtocolVariant,
        payload: VendorPayload,
        credential: str,
    ) -> str:
        """
        Submit a generation payload

        Args:
            variant: Protocol variant the payload was built for
            payload: Vendor payload
            credential: API key to authenticate with

        Returns:
            Vendor task id

        Raises:
            GenerationError: Classified failure (non-2xx, network error, missing task id)
        """
        headers = self._auth_headers(credential)
        headers.update(payload.headers)

        logger.info(
            "vendor_submit",
            variant=variant.value,
            path=payload.path,
        )

        try:
            response = await self._client.request(
                payload.method,
                payload.path,
                json=payload.body,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.warning("vendor_submit_network_error", variant=variant.value, error=str(e))
            raise VendorError(f"Network error during submission: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "vendor_submit_failed",
                variant=variant.value,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise self.classifier.to_error(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError:
            data = response.text

        task_id = get_builder(variant).extract_task_id(data)
        if not task_id:
            message = self.classifier.extract_message(response.status_code, data)
            if self.classifier.is_content_moderation(data):
                raise ContentModerationError(message, status_code=response.status_code, body=data)
            raise VendorError(f"Vendor returned no task id: {message}", status_code=response.status_code, body=data)

        logger.info("vendor_task_submitted", variant=variant.value, task_id=task_id)
        return task_id

    async def query(
        self,
        variant: ProtocolVariant,
        task_id: str,
        credential: str,
    ) -> httpx.Response:
        """
        Query a task's status

        Args:
            variant: Protocol variant of the task
            task_id: Vendor task id
            credential: API key the task was submitted with

        Returns:
            Raw httpx.Response; interpretation is left to the poller

        Raises:
            httpx.HTTPError: On transport failure
        """
        path, params = get_status_parser(variant).query_request(task_id, self.base_url)
        return await self._client.get(
            path,
            params=params or None,
            headers=self._auth_headers(credential),
        )
