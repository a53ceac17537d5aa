"""HTTP client for the remote snippet store.

Posts a captured selection to ``POST {base_url}/api/snippets`` and turns
the outcome into a :class:`CreatedSnippet` or a classified delivery error:

==========================  ==========================
Outcome                     Raised
==========================  ==========================
timeout, connection error   TransientDeliveryError
HTTP 5xx                    TransientDeliveryError
HTTP 4xx                    TerminalDeliveryError
2xx without a usable id     TerminalDeliveryError
anything else               TerminalDeliveryError
==========================  ==========================

The shared ``httpx.AsyncClient`` is owned by the application and closed
in the lifespan shutdown hook, not here.
"""

from __future__ import annotations

import httpx
import pydantic
import structlog

from knowledge_vault.interfaces.remote_store import IRemoteStoreClient
from knowledge_vault.models.snippet import CreatedSnippet
from knowledge_vault.utils.errors import TerminalDeliveryError, TransientDeliveryError

logger = structlog.get_logger(logger_name=__name__)


def _truncate(s: str, n: int = 200) -> str:
    s = s or ""
    return s if len(s) <= n else s[:n] + "…"


def _error_message(response: httpx.Response) -> str:
    """Prefer the store's ``{"error": ...}`` body, else ``HTTP <status>``."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


class HttpRemoteStoreClient(IRemoteStoreClient):
    """Remote store client backed by a shared ``httpx.AsyncClient``.

    Parameters
    ----------
    http_client:
        Shared async client.
    base_url:
        Root URL of the snippet store, e.g. ``http://localhost:5000``.
    timeout:
        Per-request timeout in seconds.  The delivery worker enforces its
        own hard per-attempt deadline on top of this.
    snippets_path:
        Path of the create endpoint.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        timeout: float = 30.0,
        snippets_path: str = "/api/snippets",
    ) -> None:
        self._http = http_client
        self._url = f"{base_url.rstrip('/')}/{snippets_path.lstrip('/')}"
        self._timeout = timeout

    async def create_snippet(
        self,
        text: str,
        source_url: str,
        source_title: str,
    ) -> CreatedSnippet:
        body = {"text": text, "sourceUrl": source_url, "sourceTitle": source_title}
        try:
            response = await self._http.post(self._url, json=body, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            raise TransientDeliveryError(
                message=f"Request timed out: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.TransportError as exc:
            raise TransientDeliveryError(
                message=f"Network error: {type(exc).__name__}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        status = response.status_code
        if status >= 500:
            raise TransientDeliveryError(
                message=_error_message(response),
                http_status=status,
                provider_name=self.get_provider_name(),
            )
        if not 200 <= status < 300:
            logger.warning(
                "remote_store_rejected",
                status=status,
                body=_truncate(response.text),
            )
            raise TerminalDeliveryError(
                message=_error_message(response),
                http_status=status,
                provider_name=self.get_provider_name(),
            )

        try:
            snippet = CreatedSnippet.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as exc:
            raise TerminalDeliveryError(
                message=f"Unusable response from remote store: {_truncate(response.text)}",
                http_status=status,
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("snippet_created", snippet_id=snippet.id, source_url=source_url)
        return snippet

    def get_provider_name(self) -> str:
        return "http_remote_store"
