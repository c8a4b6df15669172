import logging
from typing import Dict, Optional, Sequence

from sqlalchemy.orm import Session

from stock_news.errors import ProviderError
from stock_news.llm import ChatClient
from stock_news.models import NewsArticle
from stock_news.repository import upsert_article_by_url
from stock_news.schemas import ArticleIngest, LabelStyle, SentimentResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Labels: every model answer is reduced to one of three polarities, then
# rendered in the caller's vocabulary
# ---------------------------------------------------------------------------

LABELS: Dict[LabelStyle, Dict[str, str]] = {
    LabelStyle.POLARITY: {"positive": "positive", "negative": "negative", "neutral": "neutral"},
    LabelStyle.MARKET: {"positive": "Bullish", "negative": "Bearish", "neutral": "Neutral"},
}

POLARITY_ALIASES: Dict[str, str] = {
    "positive": "positive",
    "bullish": "positive",
    "negative": "negative",
    "bearish": "negative",
    "neutral": "neutral",
}

DEFAULT_CONFIDENCE = 50
FALLBACK_REASONING = "Unable to analyze"
MISSING_REASONING = "No reasoning provided"

BACKEND_OPENAI = "openai"
BACKEND_FINBERT = "finbert"

ARTICLE_SYSTEM_PROMPT = (
    "You are a financial analyst. Analyze the sentiment of news articles for stock trading. "
    "Respond with valid JSON only."
)

COMPOSITE_SYSTEM_PROMPT = (
    "You are a professional financial analyst. Provide comprehensive market analysis "
    "based on complete article content in valid JSON format only."
)


def build_article_prompt(title: str, description: Optional[str], symbol: str, style: LabelStyle) -> str:
    allowed = ", ".join(f'"{label}"' for label in LABELS[style].values())
    return (
        f"Analyze this article about {symbol}.\n\n"
        f"Title: {title}\n"
        f"Description: {description or 'No description available'}\n\n"
        "Return a JSON object with:\n"
        f"- sentiment: exactly one of {allowed}\n"
        "- confidence: integer from 1 to 100\n"
        "- reasoning: brief explanation (max 100 words)\n\n"
        "Focus on the article's potential impact on the stock price."
    )


def build_composite_prompt(articles: Sequence[dict], symbol: str) -> str:
    summaries = "\n\n".join(
        f"Article {i + 1}:\n"
        f"Title: {a.get('title')}\n"
        f"Published: {a.get('published_at')}\n"
        f"URL: {a.get('url')}\n"
        f"Full Content: {a.get('content') or a.get('description') or 'No content available'}"
        for i, a in enumerate(articles)
    )
    return (
        f"Analyze the following news articles for their impact on {symbol} stock "
        "and provide a composite analysis:\n\n"
        f"{summaries}\n\n"
        "Based on all these articles together, provide a JSON response:\n"
        "{\n"
        '  "confidence": integer between 1-100 for the overall analysis,\n'
        '  "sentiment": exactly one of "Bullish", "Bearish", "Neutral",\n'
        f'  "reasoning": explanation of the collective impact on {symbol}\n'
        "}"
    )


class SentimentClassifier:
    """
    Scores article sentiment with a language model, or with a local FinBERT
    pipeline when backend="finbert".

    Never raises for provider trouble: any failure yields the neutral fallback
    result so ingestion can carry on.
    """

    def __init__(
        self,
        chat: Optional[ChatClient] = None,
        backend: str = BACKEND_OPENAI,
        finbert_model: str = "ProsusAI/finbert",
        fallback_confidence: int = DEFAULT_CONFIDENCE,
    ):
        if backend not in (BACKEND_OPENAI, BACKEND_FINBERT):
            raise ValueError(f"Unknown sentiment backend: {backend}")
        self.chat = chat
        self.backend = backend
        self.finbert_model = finbert_model
        self.fallback_confidence = fallback_confidence
        self._pipeline = None  # loaded on first use to keep startup fast

    # -----------------------------------------------------------------------
    # Result shaping
    # -----------------------------------------------------------------------

    def fallback(self, style: LabelStyle = LabelStyle.POLARITY) -> SentimentResult:
        return SentimentResult(
            sentiment=LABELS[style]["neutral"],
            confidence=self.fallback_confidence,
            reasoning=FALLBACK_REASONING,
        )

    def _normalize(self, raw: dict, style: LabelStyle) -> SentimentResult:
        """Map a model answer onto the label set, clamp confidence to [1, 100]."""
        polarity = POLARITY_ALIASES.get(str(raw.get("sentiment", "")).strip().lower(), "neutral")

        try:
            confidence = int(round(float(raw.get("confidence"))))
        except (TypeError, ValueError, OverflowError):
            confidence = self.fallback_confidence
        confidence = max(1, min(100, confidence))

        reasoning = raw.get("reasoning")
        if not isinstance(reasoning, str) or not reasoning.strip():
            reasoning = MISSING_REASONING

        return SentimentResult(
            sentiment=LABELS[style][polarity],
            confidence=confidence,
            reasoning=reasoning.strip(),
        )

    # -----------------------------------------------------------------------
    # FinBERT backend
    # -----------------------------------------------------------------------

    def _get_pipeline(self):
        """Load and cache the FinBERT pipeline on first call."""
        if self._pipeline is None:
            from transformers import pipeline  # imported here to defer heavy load
            logger.info(f"Loading {self.finbert_model} (first use, this may take a moment)...")
            self._pipeline = pipeline("text-classification", model=self.finbert_model)
            logger.info("Model loaded successfully")
        return self._pipeline

    def _classify_finbert(self, text: str) -> dict:
        result = self._get_pipeline()(text[:2000], truncation=True)[0]
        label = result["label"].lower()
        score = float(result["score"])
        return {
            "sentiment": label,
            "confidence": score * 100,
            "reasoning": f"FinBERT scored the article {label} ({score:.2f})",
        }

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def classify(
        self,
        title: str,
        description: Optional[str],
        symbol: str,
        style: LabelStyle = LabelStyle.POLARITY,
    ) -> SentimentResult:
        """
        Score a single article.

        Returns:
            the normalized result, or the neutral fallback on any provider error
            or malformed response
        """
        try:
            if self.backend == BACKEND_FINBERT:
                raw = self._classify_finbert(f"{title}. {description or ''}")
            else:
                if self.chat is None:
                    raise ProviderError("openai", "no chat client configured")
                raw = self.chat.complete_json(
                    ARTICLE_SYSTEM_PROMPT,
                    build_article_prompt(title, description, symbol, style),
                    max_tokens=200,
                )
        except ProviderError as e:
            logger.warning(f"[{symbol}] Sentiment fallback for '{title[:60]}': {e}")
            return self.fallback(style)
        except Exception as e:
            # FinBERT load/inference failures
            logger.error(f"[{symbol}] Sentiment model failed for '{title[:60]}': {e}")
            return self.fallback(style)

        result = self._normalize(raw, style)
        logger.info(f"[{symbol}] '{title[:60]}' -> {result.sentiment} ({result.confidence}%)")
        return result

    def classify_composite(self, articles: Sequence[dict], symbol: str) -> SentimentResult:
        """
        One market-style verdict over several articles (dicts with title,
        published_at, url and content or description).
        """
        if not articles:
            return self.fallback(LabelStyle.MARKET)

        try:
            if self.backend == BACKEND_FINBERT:
                text = " ".join(f"{a.get('title')}. {a.get('description') or ''}" for a in articles)
                raw = self._classify_finbert(text)
            else:
                if self.chat is None:
                    raise ProviderError("openai", "no chat client configured")
                raw = self.chat.complete_json(
                    COMPOSITE_SYSTEM_PROMPT,
                    build_composite_prompt(articles, symbol),
                    temperature=0.7,
                )
        except ProviderError as e:
            logger.warning(f"[{symbol}] Composite sentiment fallback: {e}")
            return self.fallback(LabelStyle.MARKET)
        except Exception as e:
            logger.error(f"[{symbol}] Composite sentiment model failed: {e}")
            return self.fallback(LabelStyle.MARKET)

        return self._normalize(raw, LabelStyle.MARKET)

    def classify_and_save(self, article: ArticleIngest, db: Session) -> NewsArticle:
        """
        Score an article in market labels and upsert it by URL.

        The article is saved even when scoring falls back, so no data is lost.
        """
        result = self.classify(article.title, article.description, article.symbol, LabelStyle.MARKET)
        scored = article.model_copy(update={
            "ai_sentiment": result.sentiment,
            "ai_confidence": result.confidence,
            "ai_reasoning": result.reasoning,
        })
        return upsert_article_by_url(db, scored)
