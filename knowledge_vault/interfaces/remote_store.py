"""Abstract base class for the remote snippet store client.

The remote store is a black box with one contract: *create a snippet and
return its id, or fail*.  Implementations translate whatever transport
they use into :class:`TransientDeliveryError` (retry later) or
:class:`TerminalDeliveryError` (do not retry) so the delivery worker never
has to know about HTTP.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from knowledge_vault.models.snippet import CreatedSnippet


class IRemoteStoreClient(ABC):

    @abstractmethod
    async def create_snippet(
        self,
        text: str,
        source_url: str,
        source_title: str,
    ) -> CreatedSnippet:
        """Create a snippet in the remote store.

        Raises
        ------
        TransientDeliveryError
            No response (connection failure, timeout) or a 5xx status.
        TerminalDeliveryError
            A 4xx status or a success response without a usable id.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this client."""
