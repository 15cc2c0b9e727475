import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import OpenAI

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineImage:
    data: bytes
    mime_type: str = "image/jpeg"

    def data_url(self) -> str:
        b64 = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.mime_type};base64,{b64}"


class GenerativeModel(Protocol):
    def generate(self, prompt: str, image: Optional[InlineImage] = None) -> str:
        ...


def build_openai_client(api_key: Optional[str], timeout_s: float, max_retries: int) -> OpenAI:
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    logger.info("Initializing OpenAI client (timeout=%ss, max_retries=%s)", timeout_s, max_retries)
    return OpenAI(api_key=api_key, timeout=timeout_s, max_retries=max_retries)


class OpenAIGenerativeModel:
    """``generate(prompt, image)`` over chat completions for a single model."""

    def __init__(self, client: OpenAI, model: str, max_tokens: int = 1000):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    def generate(self, prompt: str, image: Optional[InlineImage] = None) -> str:
        if image is None:
            content = prompt
        else:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image.data_url()}},
            ]
            logger.info(
                "Sending %.1fkb %s image to model=%s",
                len(image.data) / 1024,
                image.mime_type,
                self.model,
            )

        response = self.client.chat.completions.create(
            model=self.model,
            temperature=0,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": content}],
        )
        return response.choices[0].message.content or ""
