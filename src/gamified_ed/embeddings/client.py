"""Best-effort text embeddings via the OpenAI embeddings API."""

import structlog
from openai import AsyncOpenAI

logger = structlog.get_logger()


class EmbeddingClient:
    """Embeds profile text with an external model.

    Failures never propagate: `embed` returns None and callers skip the
    embedding rather than failing the enclosing request.

    Args:
        api_key: OpenAI API key. None disables embedding.
        model: Embedding model identifier.
    """

    def __init__(self, api_key: str | None, model: str = "text-embedding-3-small"):
        self.client = AsyncOpenAI(api_key=api_key) if api_key else None
        self.model = model

    async def embed(self, text: str) -> list[float] | None:
        """Return the embedding vector for `text`, or None on any failure."""
        if self.client is None:
            logger.debug("embedding_disabled")
            return None
        if not text or not text.strip():
            return None

        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
            vector = [float(v) for v in response.data[0].embedding]
        except Exception:
            logger.exception("embedding_failed", model=self.model)
            return None

        if not vector:
            logger.warning("embedding_empty", model=self.model)
            return None
        return vector

    async def aclose(self) -> None:
        """Release the underlying HTTP client."""
        if self.client is not None:
            await self.client.close()
