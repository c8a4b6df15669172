import logging
from typing import Dict, List, Sequence

from stock_news.llm import ChatClient
from stock_news.schemas import ArticleWeight, WeightArticle

logger = logging.getLogger(__name__)

MIN_WEIGHT = 1
MAX_WEIGHT = 5
DEFAULT_WEIGHT = 3
DEFAULT_REASONING = "Standard market relevance"

SYSTEM_PROMPT = (
    "You are a financial analyst expert at evaluating the significance of news articles "
    "on stock sentiment. Provide accurate weight assessments in valid JSON format."
)


def build_weight_prompt(
    articles: Sequence[WeightArticle],
    overall_sentiment: str,
    overall_confidence: int,
    symbol: str,
) -> str:
    """Single batched prompt listing every article under its 0-based index."""
    articles_text = "\n\n".join(
        f"Article index {i}:\n"
        f"Title: {a.title}\n"
        f"Description: {a.description or 'No description available'}\n"
        f"Published: {a.published_at or 'Unknown'}\n"
        "---"
        for i, a in enumerate(articles)
    )
    return f"""
You are analyzing news articles that led to an overall {overall_sentiment} sentiment with {overall_confidence}% confidence for {symbol}.

Articles analyzed:
{articles_text}

For each article, calculate a weight (1-5 dots) representing how much it influenced the final {overall_sentiment} sentiment and {overall_confidence}% confidence level.

Consider:
- Relevance to the stock's core business
- Potential market impact
- Credibility and specificity of information
- Timing and market context
- How much it supports or contradicts the overall sentiment

Provide a JSON response with this structure, using the article index shown above:
{{
  "weights": [
    {{"article_index": 0, "weight": 4, "reasoning": "Strong earnings data directly impacts stock valuation"}},
    {{"article_index": 1, "weight": 2, "reasoning": "General market news with indirect relevance"}}
  ]
}}

Weight scale:
- 5: Critical impact, major influence on sentiment
- 4: High impact, strong influence
- 3: Moderate impact, decent influence
- 2: Low impact, minor influence
- 1: Minimal impact, slight influence
"""


def _as_int(value):
    """int() for JSON numbers and numeric strings; None for anything else."""
    if isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None


class WeightAllocator:
    """
    Asks the language model how much each article contributed to an aggregate
    sentiment and returns exactly one weight per article.

    Throttling comes from the rate limiter on the ChatClient. Provider and
    parse errors propagate; there is no partial result.
    """

    def __init__(self, chat: ChatClient, default_weight: int = DEFAULT_WEIGHT):
        if not MIN_WEIGHT <= default_weight <= MAX_WEIGHT:
            raise ValueError(f"default_weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}")
        self.chat = chat
        self.default_weight = default_weight

    def _index_model_weights(self, analysis: dict) -> Dict[int, dict]:
        """Map article_index -> the model's entry, ignoring malformed entries. First entry per index wins."""
        by_index: Dict[int, dict] = {}
        entries = analysis.get("weights")
        if not isinstance(entries, list):
            logger.warning("Weight response has no 'weights' list; using defaults")
            return by_index

        for entry in entries:
            if not isinstance(entry, dict):
                continue
            index = _as_int(entry.get("article_index"))
            if index is not None and index not in by_index:
                by_index[index] = entry
        return by_index

    def _resolve(self, index: int, entry: dict) -> ArticleWeight:
        weight = _as_int(entry.get("weight")) if entry else None
        if weight is None:
            weight = self.default_weight
        weight = max(MIN_WEIGHT, min(MAX_WEIGHT, weight))

        reasoning = entry.get("reasoning") if entry else None
        if not isinstance(reasoning, str) or not reasoning.strip():
            reasoning = DEFAULT_REASONING

        return ArticleWeight(article_index=index, weight=weight, reasoning=reasoning.strip())

    def allocate(
        self,
        articles: Sequence[WeightArticle],
        overall_sentiment: str,
        overall_confidence: int,
        symbol: str,
    ) -> List[ArticleWeight]:
        """
        Returns:
            one ArticleWeight per input article, in input order

        Raises:
            ValueError: no articles given
            ProviderError / ResponseFormatError: the model call failed
        """
        if not articles:
            raise ValueError("No articles provided for weight calculation")

        logger.info(f"Calculating article weights for {symbol} with {len(articles)} articles...")
        analysis = self.chat.complete_json(
            SYSTEM_PROMPT,
            build_weight_prompt(articles, overall_sentiment, overall_confidence, symbol),
        )

        by_index = self._index_model_weights(analysis)
        weights = [self._resolve(i, by_index.get(i)) for i in range(len(articles))]

        defaulted = sum(1 for i in range(len(articles)) if i not in by_index)
        if defaulted:
            logger.warning(f"[{symbol}] Model skipped {defaulted} article(s); default weight applied")
        logger.info(f"Calculated weights for {symbol}: {len(weights)} articles processed")
        return weights
