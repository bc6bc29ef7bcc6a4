"""
Unit Tests for the Category Suggester

Tests cover:
1. Local keyword suggestions
2. Parsing of Groq responses
3. Fallback when Groq fails
"""

from types import SimpleNamespace

from categorize.suggester import CategorySuggester


KNOWN = ["Food", "Transport", "Travel", "Entertainment", "Other", "Settlement"]


def fake_client(content=None, error=None):
    def create(**kwargs):
        if error:
            raise error
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


class TestLocalSuggestions:
    """Tests for keyword matching without an API key."""

    def test_not_available_without_key(self):
        assert CategorySuggester().is_available is False

    def test_keyword_match_uses_known_casing(self):
        suggester = CategorySuggester()

        assert suggester.suggest("Uber to the airport", ["transport"]) == ["transport"]

    def test_multiple_matches_are_capped(self):
        suggester = CategorySuggester()

        suggestions = suggester.suggest("Dinner, movie tickets, taxi and hotel", KNOWN)

        assert len(suggestions) == 3
        assert "Food" in suggestions

    def test_unknown_description_falls_back_to_other(self):
        assert CategorySuggester().suggest("Misc thing", KNOWN) == ["Other"]

    def test_blank_description(self):
        assert CategorySuggester().suggest("   ", KNOWN) == []

    def test_never_suggests_settlement(self):
        assert "Settlement" not in CategorySuggester().suggest("Settlement for pizza", KNOWN)


class TestGroqSuggestions:
    """Tests for the Groq-backed path using a stub client."""

    def test_parses_json_response(self):
        suggester = CategorySuggester()
        suggester.client = fake_client('Sure: {"categorySuggestions": ["Travel", " ", "travel", "Food"]}')

        assert suggester.suggest("Weekend away", KNOWN) == ["Travel", "Food"]

    def test_falls_back_when_groq_fails(self):
        suggester = CategorySuggester()
        suggester.client = fake_client(error=RuntimeError("rate limited"))

        assert suggester.suggest("Pizza night", KNOWN) == ["Food"]

    def test_falls_back_on_unparseable_reply(self):
        suggester = CategorySuggester()
        suggester.client = fake_client("no json here")

        assert suggester.suggest("Bus ticket", KNOWN) == ["Transport"]
