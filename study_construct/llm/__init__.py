"""Access to the language-model backend."""

from .client import ModelClient, build_anthropic_model, content_to_text

__all__ = ["ModelClient", "build_anthropic_model", "content_to_text"]
