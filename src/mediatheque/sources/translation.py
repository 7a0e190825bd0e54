# ABOUTME: Text translation collaborator backed by the Groq chat-completions API.
# ABOUTME: Missing credentials are a silent skip; failures come back as unsuccessful results.

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from mediatheque.sources.http import HttpClient, SourceError

logger = logging.getLogger(__name__)

_GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"

_LANGUAGE_NAMES = {
    "fr": "French",
    "en": "English",
    "de": "German",
    "es": "Spanish",
    "it": "Italian",
}


@dataclass(frozen=True)
class TranslationResult:
    success: bool
    text: str | None = None
    error: str | None = None


@runtime_checkable
class Translator(Protocol):
    """Anything that can translate a synopsis into a target language."""

    @property
    def available(self) -> bool: ...

    def translate(self, text: str, target_lang: str, domain_hint: str = "") -> TranslationResult: ...


class GroqTranslator:
    """Translate synopses with an LLM served by Groq.

    Proper nouns (characters, places) are kept as-is by instruction.
    """

    def __init__(
        self,
        http_client: HttpClient,
        *,
        api_key: str | None,
        model: str | None = None,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._model = model or DEFAULT_GROQ_MODEL

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def translate(self, text: str, target_lang: str, domain_hint: str = "") -> TranslationResult:
        if not self.available:
            return TranslationResult(success=False, error="no translation credentials")
        if not text or not text.strip():
            return TranslationResult(success=False, error="empty text")

        language = _LANGUAGE_NAMES.get(target_lang, target_lang)
        subject = f" about {domain_hint}" if domain_hint else ""
        payload = {
            "model": self._model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        f"You are a professional translator. Translate the following "
                        f"synopsis{subject} into natural, fluent {language}. Do not "
                        "translate names of characters, places or techniques. Return "
                        "ONLY the translation, with no introduction or conclusion."
                    ),
                },
                {"role": "user", "content": text},
            ],
            "temperature": 0.3,
            "max_tokens": 1000,
        }
        try:
            data = self._http.post_json(
                _GROQ_URL, payload, headers={"Authorization": f"Bearer {self._api_key}"}
            )
        except SourceError as exc:
            logger.warning("Groq translation failed: %s", exc)
            return TranslationResult(success=False, error=str(exc))

        try:
            translated = data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError):
            logger.warning("Groq returned an unexpected payload")
            return TranslationResult(success=False, error="unexpected response")
        if not translated:
            return TranslationResult(success=False, error="empty translation")
        return TranslationResult(success=True, text=translated)
