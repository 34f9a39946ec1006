from typing import List, Optional

from openai import OpenAI

from codebase_sync.config import SyncConfig


def get_client(config: SyncConfig) -> OpenAI:
    """
    Create an OpenAI client from the run configuration.
    """
    return OpenAI(api_key=config.openai_api_key)


class OpenAIEmbedder:
    """Turns a file's text into one embedding vector."""

    def __init__(self, client: OpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_config(cls, config: SyncConfig, client: Optional[OpenAI] = None) -> "OpenAIEmbedder":
        return cls(client or get_client(config), config.embedding_model)

    def embed(self, text: str) -> List[float]:
        resp = self.client.embeddings.create(model=self.model, input=text)
        if not resp.data:
            raise ValueError(f"Embedding response from {self.model} contained no vectors")
        return list(resp.data[0].embedding)
