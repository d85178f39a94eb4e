"""Deterministic stand-ins for the embedding and completion collaborators used by the tests."""

import hashlib
from types import SimpleNamespace
from typing import List, Sequence

from dragon_kb.rag.errors import ModelUnavailable
from dragon_kb.rag.tokenizer import tokenize

DIM = 64


def hash_vector(text: str, dim: int = DIM) -> List[float]:
    """Bag-of-tokens vector with each token hashed into one of dim buckets."""
    vec = [0.0] * dim
    for tok in tokenize(text):
        bucket = int(hashlib.md5(tok.encode("utf-8")).hexdigest(), 16) % dim
        vec[bucket] += 1.0
    return vec


class FakeEmbedder:
    """Async embedding function that records its calls and can fail on a given call."""

    def __init__(self, fail_on_call: int = None, dim: int = DIM):
        self.fail_on_call = fail_on_call
        self.dim = dim
        self.calls: List[List[str]] = []

    async def __call__(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ModelUnavailable(f"embedding service down on call {len(self.calls)}")
        return [hash_vector(t, self.dim) for t in texts]


class FakeCompleter:
    def __init__(self, reply: str = "ok"):
        self.reply = reply
        self.prompts = []

    async def __call__(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append((system_prompt, user_prompt))
        return self.reply


class FakeOpenAIClient:
    """Mimics the parts of AsyncOpenAI used by the embedder and completion modules.

    Embedding responses come back in reverse order (with their index set) to
    check that callers reorder them.
    """

    def __init__(self, reply: str = "ok", error: Exception = None):
        self.reply = reply
        self.error = error
        self.embedding_requests = []
        self.chat_requests = []
        self.embeddings = SimpleNamespace(create=self._create_embeddings)
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create_chat))

    async def _create_embeddings(self, **kwargs):
        self.embedding_requests.append(kwargs)
        if self.error is not None:
            raise self.error
        data = [
            SimpleNamespace(index=i, embedding=hash_vector(text))
            for i, text in enumerate(kwargs["input"])
        ]
        return SimpleNamespace(data=list(reversed(data)), usage=SimpleNamespace(total_tokens=7))

    async def _create_chat(self, **kwargs):
        self.chat_requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])
