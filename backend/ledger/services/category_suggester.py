"""
Category suggestions for transaction descriptions.

Suggestions come from the user's own description memory first
(``CategoryLookup``) and fall back to an OpenAI chat-completions call.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Optional

import httpx
from django.conf import settings

from ..models import Category, CategoryLookup

logger = logging.getLogger(__name__)

SOURCE_LOOKUP = "lookup"
SOURCE_AI = "ai"
SOURCE_AI_RATE_LIMITED = "ai_rate_limited"

SYSTEM_PROMPT = (
    "You classify bank transactions into one of the provided categories. "
    'Respond ONLY with JSON: {"category":"name","confidence":0.0-1.0}. '
    "Use an existing category name exactly. "
    "Confidence reflects how sure you are."
)


@dataclass
class Suggestion:
    category: Optional[Category]
    confidence: Optional[float]
    source: str

    def as_dict(self):
        return {
            "category_id": self.category.id if self.category else None,
            "category_name": self.category.name if self.category else None,
            "confidence": self.confidence,
            "source": self.source,
        }


class AiCategoryClient:
    """
    Thin OpenAI chat-completions client returning a ``Suggestion``.

    Disabled (returns ``None``) when ``OPENAI_API_KEY`` is empty. Network and
    parsing problems never propagate: rate limiting maps to an
    ``ai_rate_limited`` suggestion, everything else to ``None``.
    """

    TEMPERATURE = 0.2
    TIMEOUT_SECONDS = 10.0

    def __init__(self, api_key=None, model=None, api_url=None, http_client=None):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.model = model or settings.OPENAI_MODEL
        self.api_url = api_url or settings.OPENAI_API_URL
        self.http_client = http_client

    @property
    def enabled(self):
        return bool(self.api_key)

    def build_messages(self, description, categories):
        names = list(dict.fromkeys(category.name for category in categories))
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Description: {description}\nCategories: {', '.join(names)}",
            },
        ]

    def _post(self, payload):
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.http_client is not None:
            return self.http_client.post(
                self.api_url, json=payload, headers=headers, timeout=self.TIMEOUT_SECONDS
            )
        with httpx.Client() as client:
            return client.post(
                self.api_url, json=payload, headers=headers, timeout=self.TIMEOUT_SECONDS
            )

    def suggest(self, description, categories):
        categories = list(categories)
        if not self.enabled:
            logger.info(
                "AI category suggestion skipped - client not configured",
                extra={"action": "ai_suggestion_skipped", "component": "AiCategoryClient"},
            )
            return None
        if not categories:
            logger.info(
                "AI category suggestion skipped - no categories available",
                extra={"action": "ai_suggestion_skipped", "component": "AiCategoryClient"},
            )
            return None

        payload = {
            "model": self.model,
            "temperature": self.TEMPERATURE,
            "messages": self.build_messages(description, categories),
        }

        try:
            response = self._post(payload)
            response.raise_for_status()
            content = (
                response.json().get("choices", [{}])[0].get("message", {}).get("content")
                or ""
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(
                "AI category suggestion HTTP error",
                extra={
                    "status_code": status,
                    "error_message": str(e),
                    "action": "ai_suggestion_http_error",
                    "component": "AiCategoryClient",
                    "severity": "medium",
                },
            )
            if status == 429:
                return Suggestion(category=None, confidence=None, source=SOURCE_AI_RATE_LIMITED)
            return None
        except (httpx.HTTPError, ValueError, KeyError, IndexError, AttributeError) as e:
            logger.error(
                "AI category suggestion failed",
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "action": "ai_suggestion_failed",
                    "component": "AiCategoryClient",
                    "severity": "medium",
                },
            )
            return None

        logger.info(
            "AI category suggestion response received",
            extra={
                "content_preview": content[:100],
                "action": "ai_suggestion_response",
                "component": "AiCategoryClient",
            },
        )
        parsed = self.parse_response(content, categories)
        if parsed is None:
            return None
        category, confidence = parsed
        return Suggestion(category=category, confidence=confidence, source=SOURCE_AI)

    def parse_response(self, content, categories):
        """
        ``(category, confidence)`` from the model output, or ``None``.

        JSON answers are preferred; a bare category name is accepted with a
        confidence of 0.5.
        """
        try:
            data = json.loads(content)
        except (TypeError, ValueError):
            data = None

        if isinstance(data, dict):
            matched = self.match_category(data.get("category"), categories)
            if matched is not None:
                return matched, self.clamp_confidence(data.get("confidence"))

        matched = self.match_category(content, categories)
        if matched is not None:
            return matched, 0.5
        return None

    @staticmethod
    def match_category(name, categories):
        if not name or not isinstance(name, str):
            return None
        wanted = name.strip().lower()
        for category in categories:
            if category.name.lower() == wanted:
                return category
        return None

    @staticmethod
    def clamp_confidence(value):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(number):
            return 0.0
        return max(min(number, 1.0), 0.0)


class CategorySuggester:
    """
    Suggest a category for a description, lookup memory first.

    Usage:
        suggestion = CategorySuggester(user).suggest("STARBUCKS #123")
    """

    def __init__(self, user, ai_client=None):
        self.user = user
        self.ai_client = ai_client if ai_client is not None else AiCategoryClient()

    def available_categories(self):
        return list(Category.objects.visible_to(self.user))

    def suggest_from_lookup(self, description):
        lookup = CategoryLookup.suggest_for(self.user, description)
        if lookup is None or lookup.category_id is None:
            return None
        return Suggestion(
            category=lookup.category,
            confidence=lookup.confidence,
            source=SOURCE_LOOKUP,
        )

    def suggest(self, description):
        suggestion = self.suggest_from_lookup(description)
        if suggestion is not None:
            return suggestion

        normalized = CategoryLookup.normalize(description)
        if not normalized:
            return None

        return self.ai_client.suggest(normalized, self.available_categories())
