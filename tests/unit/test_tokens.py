"""
Token Estimation Unit Tests
"""

from build_core.llm import estimate_tokens
from build_core.llm import tokens


class TestEstimateTokens:
    """estimate_tokens"""

    def test_empty_text(self):
        assert estimate_tokens("") == 0

    def test_counts_tokens(self):
        assert estimate_tokens("def add(a, b):\n    return a + b\n") > 0

    def test_character_estimate_without_encoding(self, monkeypatch):
        monkeypatch.setattr(tokens, "_encoding", lambda: None)
        assert estimate_tokens("x" * 40) == 10
        assert estimate_tokens("ab") == 1
