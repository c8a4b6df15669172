from enum import Enum
from typing import List, Optional, Tuple

from stock_news.rules import Rule, first_match, keyword_rule, regex_predicate

# ---------------------------------------------------------------------------
# Symbol groups: static sets used to query and filter articles
# ---------------------------------------------------------------------------


class SymbolGroup(str, Enum):
    INDEX_FUNDS = "index-funds"
    MAGNIFICENT_7 = "magnificent-7"

    @property
    def symbols(self) -> Tuple[str, ...]:
        return GROUP_SYMBOLS[self]


GROUP_SYMBOLS = {
    SymbolGroup.INDEX_FUNDS: ("SPY", "QQQ", "DIA"),
    SymbolGroup.MAGNIFICENT_7: ("AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "TSLA", "META"),
}

# Placeholder tags for articles that are not yet tied to a specific ticker
FALLBACK_SYMBOL = "MARKET"
FALLBACK_SYMBOLS = (FALLBACK_SYMBOL, "GENERAL")

INDEX_FUND_CATEGORY = "Index Fund"
HEADLINE_CATEGORY = "Headline"

# ---------------------------------------------------------------------------
# Keyword rules: order is the tie-break priority
# ---------------------------------------------------------------------------

INDEX_FUND_RULES: List[Rule] = [
    keyword_rule("SPY", ["spy", "s&p 500", "s&p500", "standard & poor's 500", "spdr s&p 500"],
                 category=INDEX_FUND_CATEGORY),
    keyword_rule("QQQ", ["qqq", "nasdaq", "powershares qqq", "invesco qqq"],
                 category=INDEX_FUND_CATEGORY),
    keyword_rule("DIA", ["dia", "dow jones", "djia", "dow industrial", "spdr dow jones"],
                 category=INDEX_FUND_CATEGORY),
]

COMPANY_RULES: List[Rule] = [
    Rule("AAPL", regex_predicate(r"\b(AAPL|Apple)\b")),
    Rule("TSLA", regex_predicate(r"\b(TSLA|Tesla)\b")),
    Rule("NVDA", regex_predicate(r"\b(NVDA|NVIDIA)\b")),
    Rule("MSFT", regex_predicate(r"\b(MSFT|Microsoft)\b")),
    Rule("GOOGL", regex_predicate(r"\b(GOOGL|GOOG|Google|Alphabet)\b")),
    Rule("AMZN", regex_predicate(r"\b(AMZN|Amazon)\b")),
    Rule("META", regex_predicate(r"\b(META|Facebook)\b")),
    Rule("JPM", regex_predicate(r"\b(JPM|JPMorgan)\b")),
    Rule("BAC", regex_predicate(r"\b(BAC|Bank of America)\b")),
    Rule("WMT", regex_predicate(r"\b(WMT|Walmart)\b")),
]


def group_for_symbol(symbol: str) -> Optional[SymbolGroup]:
    """Return the group a ticker belongs to, or None."""
    for group in SymbolGroup:
        if symbol.upper() in group.symbols:
            return group
    return None


def extract_symbol(text: str, default: str = FALLBACK_SYMBOL) -> str:
    """Guess the ticker a headline is about from company names, else `default`."""
    rule = first_match(COMPANY_RULES, text)
    return rule.target if rule else default
