"""Model Client - uniform text-in/text-out access to the LLM backend."""

import threading
from typing import Any, Callable

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from loguru import logger

from study_construct.config.settings import Settings, get_settings
from study_construct.exceptions import BackendError, CredentialError, EmptyResponseError
from study_construct.models.pipeline import InlineBlob

ChatModelFactory = Callable[[str, str, float, Settings], BaseChatModel]


def build_anthropic_model(
    credential: str, model_id: str, temperature: float, settings: Settings
) -> BaseChatModel:
    """
    Create the default chat model.

    Retries are disabled: callers decide whether a failed call is worth
    repeating. The timeout applies to each call on its own.
    """
    return ChatAnthropic(
        model=model_id,
        api_key=credential,
        temperature=temperature,
        timeout=settings.request_timeout_seconds,
        max_retries=0,
    )


def content_to_text(content: Any) -> str:
    """
    Flatten a chat message's content into plain text.

    Args:
        content: Either a string or a list of content blocks

    Returns:
        The concatenated text parts
    """
    if isinstance(content, str):
        return content

    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text") or "")
    return "".join(parts)


def build_message(prompt_text: str, inline_blob: InlineBlob | None = None) -> HumanMessage:
    """Build the single user message for a call, attaching the blob if any."""
    if inline_blob is None:
        return HumanMessage(content=prompt_text)

    block_type = "image" if inline_blob.mime_type.startswith("image/") else "file"
    return HumanMessage(
        content=[
            {
                "type": block_type,
                "source_type": "base64",
                "data": inline_blob.base64,
                "mime_type": inline_blob.mime_type,
            },
            {"type": "text", "text": prompt_text},
        ]
    )


class ModelClient:
    """
    Call the model backend with one prompt and get its text back.

    Failure modes:
        CredentialError: no credential configured
        BackendError: the backend rejected the call (message kept verbatim)
        EmptyResponseError: success status without any text

    No retries happen here.
    """

    def __init__(
        self,
        credential: str | None,
        model_id: str | None = None,
        temperature: float = 0.7,
        settings: Settings | None = None,
        chat_model: BaseChatModel | None = None,
        model_factory: ChatModelFactory = build_anthropic_model,
    ) -> None:
        self.settings = settings or get_settings()
        self.credential = credential
        self.model_id = model_id or self.settings.model_name
        self.temperature = temperature
        self._chat_model = chat_model
        self._model_factory = model_factory
        self._lock = threading.Lock()

    def _get_chat_model(self) -> BaseChatModel:
        with self._lock:
            if self._chat_model is None:
                self._chat_model = self._model_factory(
                    self.credential, self.model_id, self.temperature, self.settings
                )
        return self._chat_model

    def generate(self, prompt_text: str, inline_blob: InlineBlob | None = None) -> str:
        """
        Send one prompt (and optionally one binary blob) to the model.

        Args:
            prompt_text: The full prompt
            inline_blob: Optional base64 payload with its MIME type

        Returns:
            The model's raw text answer
        """
        if not self.credential:
            raise CredentialError("Missing access credential for the model backend")

        message = build_message(prompt_text, inline_blob)

        try:
            response = self._get_chat_model().invoke([message])
        except Exception as e:
            logger.debug(f"Backend call to {self.model_id} failed: {e}")
            raise BackendError(str(e)) from e

        text = content_to_text(response.content)
        if not text.strip():
            raise EmptyResponseError(f"Model {self.model_id} returned no text")
        return text
