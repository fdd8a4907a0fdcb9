"""Protocol interface for text embedders."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Embedder(Protocol):
    """Protocol for text-to-vector embedding clients."""

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per text, in input order.

        Raises:
            TransientProviderError: On quota, network or timeout failure.
        """
        ...
