"""
Integration tests for the FinBERT sentiment backend. These load the actual model.
The first run will download the model (~400MB). Subsequent runs use the cache.

Run with: pytest tests/test_classifier_integration.py -v -s
The -s flag is needed to see the printed label table.
"""
import pytest

from stock_news.classifier import FALLBACK_REASONING, SentimentClassifier
from stock_news.schemas import LabelStyle

pytestmark = pytest.mark.integration

# ---------------------------------------------------------------------------
# Sample headlines: mix of clearly bullish, bearish and flat news
# ---------------------------------------------------------------------------

SAMPLE_HEADLINES = [
    # (headline, expected_label); None means no assertion, just observe
    ("Apple reports record quarterly revenue, beats estimates",        "Bullish"),
    ("Nvidia shares soar after raising full-year guidance",             "Bullish"),
    ("Tesla recalls 2 million vehicles, stock tumbles",                 "Bearish"),
    ("Amazon posts surprise loss as costs balloon",                     "Bearish"),
    ("Microsoft to hold annual shareholder meeting in December",        None),
    ("Alphabet names new chief financial officer",                      None),
]


class TestFinbertIntegration:
    @classmethod
    def setup_class(cls):
        cls.classifier = SentimentClassifier(backend="finbert")

    def test_print_labels(self, capsys):
        """Prints a label table. Use `pytest -s` to see the output."""
        with capsys.disabled():
            print("\n" + "=" * 85)
            print(f"  {'HEADLINE':<60} {'LABEL':<8} CONF")
            print("=" * 85)
            for headline, _ in SAMPLE_HEADLINES:
                result = self.classifier.classify(headline, None, "TEST", LabelStyle.MARKET)
                print(f"  {headline[:60]:<60} {result.sentiment:<8} {result.confidence}")
            print("=" * 85)

    def test_results_are_well_formed(self):
        for headline, _ in SAMPLE_HEADLINES:
            result = self.classifier.classify(headline, None, "TEST", LabelStyle.MARKET)

            assert result.sentiment in ("Bullish", "Bearish", "Neutral")
            assert 1 <= result.confidence <= 100
            assert result.reasoning != FALLBACK_REASONING, \
                f"Model fell back for '{headline}': check the model download"

    def test_clear_headlines_get_expected_label(self):
        for headline, expected in SAMPLE_HEADLINES:
            if expected is None:
                continue
            result = self.classifier.classify(headline, None, "TEST", LabelStyle.MARKET)
            assert result.sentiment == expected, \
                f"Expected {expected} for '{headline}' but got {result.sentiment} ({result.confidence})"
