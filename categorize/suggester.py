import json
import logging
import re
from typing import Iterable, Optional

from groq import Groq

from splitledger.config import DEFAULT_GROQ_MODEL, Settings
from splitledger.settlement import SETTLEMENT_CATEGORY

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3

SYSTEM_PROMPT = """You suggest spending categories for a shared-expense app.
Given an expense description, reply with up to 3 relevant, non-empty category names.
Prefer names from the known categories when one fits.

Return ONLY valid JSON of the form {"categorySuggestions": ["Food", "Travel"]}, no explanations."""

KEYWORDS = {
    "Food": ("dinner", "lunch", "breakfast", "restaurant", "pizza", "cafe", "coffee", "meal", "snack"),
    "Groceries": ("grocery", "groceries", "supermarket", "market", "vegetables"),
    "Transport": ("taxi", "uber", "bus", "train", "metro", "fuel", "gas", "parking", "cab"),
    "Travel": ("flight", "hotel", "airbnb", "trip", "hostel", "booking"),
    "Entertainment": ("movie", "cinema", "concert", "game", "tickets", "netflix", "party"),
    "Utilities": ("electricity", "water", "internet", "wifi", "rent", "phone", "bill"),
    "Shopping": ("clothes", "shoes", "amazon", "gift", "mall"),
    "Health": ("pharmacy", "doctor", "medicine", "gym", "hospital"),
}


class CategorySuggester:
    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_GROQ_MODEL):
        self.api_key = api_key
        self.client = None
        self.model = model

        if self.api_key:
            self.client = Groq(api_key=self.api_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CategorySuggester":
        return cls(api_key=settings.groq_api_key, model=settings.groq_model)

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def suggest(self, description: str, known_categories: Iterable[str] = ()) -> list[str]:
        known = list(known_categories)
        if not description.strip():
            return []
        suggestions = self._suggest_with_groq(description, known) if self.client else []
        if not suggestions:
            suggestions = self._suggest_locally(description, known)
        return self._clean(suggestions)

    def _suggest_with_groq(self, description: str, known: list[str]) -> list[str]:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Known categories: {', '.join(known)}\n\nDescription: {description}"},
                ],
                temperature=0.1,
                max_tokens=256,
            )
            return self._extract_suggestions(response.choices[0].message.content)
        except Exception as e:
            logger.warning("Groq category suggestion failed, using keyword matching: %s", e)
            return []

    def _extract_suggestions(self, text: str) -> list[str]:
        json_match = re.search(r'\{[\s\S]*\}', text or "")
        if json_match:
            try:
                data = json.loads(json_match.group())
            except json.JSONDecodeError:
                return []
            values = data.get("categorySuggestions", [])
            if isinstance(values, list):
                return [v for v in values if isinstance(v, str)]
        return []

    def _suggest_locally(self, description: str, known: list[str]) -> list[str]:
        text_lower = description.lower()
        by_lower = {name.lower(): name for name in known}

        matches = [name for name in known if name.lower() in text_lower]
        for category, words in KEYWORDS.items():
            if any(re.search(rf"\b{re.escape(w)}\b", text_lower) for w in words):
                matches.append(by_lower.get(category.lower(), category))
        if not matches:
            matches.append(by_lower.get("other", "Other"))
        return matches

    @staticmethod
    def _clean(suggestions: list[str]) -> list[str]:
        seen: set[str] = set()
        result = []
        for name in suggestions:
            name = name.strip()
            if not name or name.lower() == SETTLEMENT_CATEGORY.lower() or name.lower() in seen:
                continue
            seen.add(name.lower())
            result.append(name)
        return result[:MAX_SUGGESTIONS]
