"""
Translation lookup used by the importer.

OpenAITranslator implements the importer's batch Translator callable with
structured outputs: the model answers with a BatchTranslation object, one
translation per input text, in order.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, Field

from enforcer.errors import Transient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You translate vocabulary list entries for a language learner. "
    "Return exactly one translation per entry, in the same order. "
    "Keep comma-separated forms (e.g. article or plural) in the translation."
)


class BatchTranslation(BaseModel):
    """Structured answer for one batch."""
    translations: list[str] = Field(default_factory=list)


class OpenAITranslator:
    """
    Batch translator backed by the OpenAI chat completions API.
    """

    def __init__(
        self,
        source_language: str = "Dutch",
        target_language: str = "English",
        model: Optional[str] = None,
        client: Optional[OpenAI] = None
    ):
        self.source_language = source_language
        self.target_language = target_language
        self.model = model or os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        return self._client

    def _prompt(self, texts: list[str]) -> str:
        numbered = "\n".join(f"{index}. {text}" for index, text in enumerate(texts, start=1))
        return (
            f"Translate these {len(texts)} {self.source_language} entries "
            f"into {self.target_language}:\n\n{numbered}"
        )

    def __call__(self, texts: list[str]) -> list[str]:
        """
        Translate a batch of texts.

        Raises:
            Transient: the API call failed
            ValueError: the answer has the wrong number of translations
        """
        if not texts:
            return []

        try:
            completion = self._get_client().chat.completions.parse(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self._prompt(texts)},
                ],
                response_format=BatchTranslation,
            )
        except OpenAIError as exc:
            logger.error("Translation request failed: %s", exc)
            raise Transient(f"Translation request failed: {exc}") from exc

        parsed = completion.choices[0].message.parsed
        translations = parsed.translations if parsed is not None else []
        if len(translations) != len(texts):
            raise ValueError(
                f"Translation response count mismatch: {len(translations)} for {len(texts)} texts"
            )
        return [translation.strip() for translation in translations]
