"""Gemini classification service with primary/secondary model fallback."""

from typing import Any, Iterable, Optional

import httpx

from reelkeeper.errors import ClassificationUnavailableError, MissingCredentialError
from reelkeeper.metrics import CLASSIFICATION_DURATION, CLASSIFIER_FALLBACKS, SUGGESTIONS_DEGRADED
from reelkeeper.models.classification import CategorySuggestions
from reelkeeper.services.answers import (
    FALLBACK_CATEGORY,
    build_vocabulary,
    default_suggestions,
    parse_answer,
    resolve_suggestions,
)
from reelkeeper.storage.credentials import CredentialStore
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_PRIMARY_MODEL = "gemini-2.5-pro"
DEFAULT_SECONDARY_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT = 30.0

# Vocabulary of single-category mode. Deliberately separate from the registry.
CLASSIFY_CATEGORIES = [
    "Motivational",
    "Gym",
    "Communication",
    "Ideas",
    "Coding",
    "UI",
    "ML-AI",
    "Job",
    "Internships",
    "love",
    "sayari",
    "songs",
]

CLASSIFY_INSTRUCTION = (
    "Classify this Instagram reel text into exactly one of "
    f"[{', '.join(CLASSIFY_CATEGORIES)}]. Return only the category name."
)

SUGGEST_INSTRUCTION = """Classify this Instagram reel text using only these categories:
[{categories}]

Return JSON only. No markdown. No explanation.
{{
  "primary": "best matching category",
  "suggestions": ["category", "category", "category"]
}}

"suggestions" must hold exactly 3 different categories from the list, best first."""

CLASSIFY_GENERATION_CONFIG = {
    "temperature": 0.2,
    "topK": 1,
    "topP": 1,
    "maxOutputTokens": 10,
}

SUGGEST_GENERATION_CONFIG = {
    "temperature": 0.3,
    "topK": 1,
    "topP": 1,
    "maxOutputTokens": 200,
}


class ModelCallError(Exception):
    """A single model attempt failed (transport, status or payload)."""


class ReelClassifier:
    """Classifies reel captions with a two-model fallback chain."""

    def __init__(
        self,
        credentials: CredentialStore,
        primary_model: str = DEFAULT_PRIMARY_MODEL,
        secondary_model: str = DEFAULT_SECONDARY_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize classifier.

        Args:
            credentials: Store holding the Gemini API key
            primary_model: Model tried first (e.g., gemini-2.5-pro)
            secondary_model: Model tried once if the primary fails
            base_url: Gemini API base URL
            timeout: Per-attempt timeout in seconds
            http_client: Pre-built client, mainly for tests
        """
        self.credentials = credentials
        self.primary_model = primary_model
        self.secondary_model = secondary_model
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def classify(self, caption: str) -> str:
        """Classify a caption into a single category (two-model fallback).

        Answers outside the fixed vocabulary become "Other".

        Args:
            caption: Caption text to classify

        Returns:
            Category name

        Raises:
            MissingCredentialError: If no API key is stored
            ClassificationUnavailableError: If both models fail
        """
        api_key = self._require_api_key()
        prompt = f"{CLASSIFY_INSTRUCTION}\n\nText to classify: {caption}"

        with CLASSIFICATION_DURATION.labels(mode="classify").time():
            text, model = self._generate_with_fallback(
                api_key, prompt, CLASSIFY_GENERATION_CONFIG, mode="classify"
            )

        result = text.strip()
        if result in CLASSIFY_CATEGORIES:
            logger.info(f"Classified as {result} (model={model})")
            return result

        logger.info(f"Model {model} answered unknown category {result!r}, using {FALLBACK_CATEGORY}")
        return FALLBACK_CATEGORY

    def suggest(self, caption: str, custom_categories: Iterable[str] = ()) -> CategorySuggestions:
        """Suggest a primary category and three alternatives.

        Never raises once a credential is present: any failure yields the default
        suggestions.

        Args:
            caption: Caption text to classify
            custom_categories: User categories added to the built-in vocabulary

        Returns:
            CategorySuggestions with exactly three suggestions

        Raises:
            MissingCredentialError: If no API key is stored
        """
        api_key = self._require_api_key()

        try:
            vocabulary = build_vocabulary(custom_categories)
            prompt = (
                SUGGEST_INSTRUCTION.format(categories=", ".join(vocabulary))
                + f"\n\nText to classify: {caption}"
            )
            with CLASSIFICATION_DURATION.labels(mode="suggest").time():
                text, model = self._generate_with_fallback(
                    api_key, prompt, SUGGEST_GENERATION_CONFIG, mode="suggest"
                )
            result = resolve_suggestions(parse_answer(text), vocabulary, model)
        except ClassificationUnavailableError as e:
            logger.warning(f"Suggestion request failed, using defaults: {e}")
            SUGGESTIONS_DEGRADED.inc()
            return default_suggestions()
        except Exception as e:
            logger.error(f"Suggestion request failed, using defaults: {e}", exc_info=True)
            SUGGESTIONS_DEGRADED.inc()
            return default_suggestions()

        if result.degraded:
            SUGGESTIONS_DEGRADED.inc()
        logger.info(
            f"Suggested {result.primary} / {result.suggestions} (model={result.model})"
        )
        return result

    def _require_api_key(self) -> str:
        api_key = self.credentials.get()
        if not api_key:
            raise MissingCredentialError("Set your Gemini API key first")
        return api_key

    def _generate_with_fallback(
        self, api_key: str, prompt: str, generation_config: dict[str, Any], mode: str
    ) -> tuple[str, str]:
        """Try the primary model, then the secondary model once.

        Returns:
            Tuple of (answer text, model that answered)

        Raises:
            ClassificationUnavailableError: If both models fail
        """
        try:
            return self._generate(api_key, self.primary_model, prompt, generation_config), self.primary_model
        except ModelCallError as e:
            logger.warning(f"Primary model failed: {e}, falling back to {self.secondary_model}")
            CLASSIFIER_FALLBACKS.labels(mode=mode).inc()

        try:
            return self._generate(api_key, self.secondary_model, prompt, generation_config), self.secondary_model
        except ModelCallError as e:
            logger.error(f"Secondary model failed: {e}")
            raise ClassificationUnavailableError(
                "Classification failed on both models. Please try again."
            ) from e

    def _generate(
        self, api_key: str, model: str, prompt: str, generation_config: dict[str, Any]
    ) -> str:
        """Call generateContent on one model and return the answer text.

        Error messages never include the request URL, which carries the API key.

        Raises:
            ModelCallError: On any transport, status or payload problem
        """
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        try:
            response = self.http_client.post(
                f"{self.base_url}/models/{model}:generateContent",
                params={"key": api_key},
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise ModelCallError(f"{model} timed out") from e
        except httpx.HTTPStatusError as e:
            raise ModelCallError(f"{model} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ModelCallError(f"{model} request failed ({type(e).__name__})") from e
        except ValueError as e:
            raise ModelCallError(f"{model} returned invalid JSON") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ModelCallError(f"{model} response has no answer text") from e
        if not isinstance(text, str):
            raise ModelCallError(f"{model} answer text is not a string")
        return text

    def close(self) -> None:
        """Close HTTP client."""
        self.http_client.close()
        logger.info("Closed classifier HTTP client")
