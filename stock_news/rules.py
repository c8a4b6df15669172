import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

Predicate = Callable[[str], bool]


@dataclass(frozen=True)
class Rule:
    """A target (e.g. a ticker) assigned when `predicate` accepts the text."""
    target: str
    predicate: Predicate
    category: Optional[str] = None


def keyword_predicate(keywords: Iterable[str]) -> Predicate:
    """
    Case-insensitive keyword presence test.

    Keywords match on word boundaries, so "dia" matches "DIA shares" but not "media".
    This is stricter than plain substring search: run-on forms such as "nasdaq100"
    or "s&p500s" do not match either. List such variants as keywords of their own.
    """
    patterns = [
        re.compile(r"(?<!\w)" + re.escape(k.lower()) + r"(?!\w)")
        for k in keywords
    ]

    def predicate(text: str) -> bool:
        lowered = (text or "").lower()
        return any(p.search(lowered) for p in patterns)

    return predicate


def regex_predicate(pattern: str) -> Predicate:
    """Case-insensitive regular expression search."""
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda text: bool(compiled.search(text or ""))


def keyword_rule(target: str, keywords: Sequence[str], category: Optional[str] = None) -> Rule:
    return Rule(target=target, predicate=keyword_predicate(keywords), category=category)


def first_match(rules: Sequence[Rule], text: str) -> Optional[Rule]:
    """
    Evaluate rules in order and return the first one whose predicate accepts `text`.

    Ties are broken by list position only; how many keywords matched is irrelevant.
    """
    for rule in rules:
        if rule.predicate(text):
            return rule
    return None
