import httpx
import structlog

from demohub.errors import ProviderError

logger = structlog.get_logger()


class TavusClient:
    """Outbound calls to the conversation provider's REST API."""

    def __init__(self, api_key: str, base_url: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"x-api-key": api_key} if api_key else {},
        )

    async def end_conversation(self, conversation_id: str) -> None:
        if not self.api_key:
            raise ProviderError("Provider API key is not configured")
        try:
            response = await self.client.post(f"/conversations/{conversation_id}/end")
        except httpx.HTTPError as exc:
            raise ProviderError(f"Provider request failed: {exc}") from exc

        # Ending an already-ended conversation is not an error for our purposes
        if response.status_code in {200, 204, 404}:
            logger.info(
                "tavus_conversation_end_requested",
                conversation_id=conversation_id,
                status_code=response.status_code,
            )
            return
        raise ProviderError(
            f"Provider returned {response.status_code} ending conversation {conversation_id}"
        )

    async def aclose(self) -> None:
        await self.client.aclose()
