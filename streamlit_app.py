import os
import time
from collections import Counter
from datetime import datetime, timezone

import requests
import streamlit as st

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

API_BASE = os.environ.get("STOCK_NEWS_API", "http://localhost:8000")
REFRESH_INTERVAL = 300   # seconds
WEIGHTS_CACHE_TTL = 3600  # weights are recomputed at most once an hour per article set

GROUPS = {
    "Magnificent 7": "magnificent-7",
    "Index Funds": "index-funds",
}

SENTIMENT_EMOJI = {
    "Bullish": "🟢",
    "Bearish": "🔴",
    "Neutral": "⚪",
}

# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def post(path: str, timeout: int = 120, **kwargs):
    """POST to the API. Returns the decoded JSON, or None after showing an error."""
    try:
        response = requests.post(f"{API_BASE}{path}", timeout=timeout, **kwargs)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.ConnectionError:
        st.error(f"Cannot reach the API at {API_BASE}.")
        return None
    except Exception as e:
        st.error(f"Request to {path} failed: {e}")
        return None


def get_articles(group: str, symbol: str) -> list[dict]:
    """Fetch stored articles. Returns an empty list and shows an error on failure."""
    params = {"group": group}
    if symbol:
        params = {"symbol": symbol}
    try:
        response = requests.get(f"{API_BASE}/articles", params=params, timeout=5)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.ConnectionError:
        st.error(
            f"Cannot reach the API at {API_BASE}. "
            "Start it with: `uvicorn main:app --reload`"
        )
        return []
    except Exception as e:
        st.error(f"Failed to fetch articles: {e}")
        return []


@st.cache_data(ttl=WEIGHTS_CACHE_TTL, show_spinner=False)
def get_weights(symbol: str, sentiment: str, confidence: int, articles: tuple) -> dict:
    """Article weights for an aggregate sentiment; `articles` is a tuple of (title, description, published_at)."""
    body = {
        "symbol": symbol,
        "overallSentiment": sentiment,
        "overallConfidence": confidence,
        "articles": [
            {"title": t, "description": d, "published_at": p} for t, d, p in articles
        ],
    }
    result = post("/article-weights", json=body)
    if not result:
        return {}
    return {w["article_index"]: w for w in result.get("weights", [])}


def aggregate_sentiment(articles: list[dict]) -> tuple[str, int]:
    """Majority sentiment and mean confidence across scored articles."""
    scored = [a for a in articles if a.get("ai_sentiment")]
    if not scored:
        return "Neutral", 50
    label = Counter(a["ai_sentiment"] for a in scored).most_common(1)[0][0]
    confidence = round(sum(a.get("ai_confidence") or 0 for a in scored) / len(scored))
    return label, confidence


def time_ago(published_at: str) -> str:
    """Convert a UTC ISO datetime string to a human-readable 'X ago' label."""
    try:
        dt = datetime.fromisoformat(published_at.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        seconds = max(0, int((datetime.now(timezone.utc) - dt).total_seconds()))
        if seconds < 3600:
            return f"{seconds // 60}m ago"
        hours = seconds // 3600
        if hours < 24:
            return f"{hours}h ago"
        return f"{hours // 24}d ago"
    except Exception:
        return "unknown"


def dots(weight: int) -> str:
    return "●" * weight + "○" * (5 - weight)


# ─────────────────────────────────────────────────────────────────────────────
# Page config  (must be the first Streamlit call)
# ─────────────────────────────────────────────────────────────────────────────

st.set_page_config(
    page_title="Stock News Sentiment",
    page_icon="📈",
    layout="wide",
)

# ─────────────────────────────────────────────────────────────────────────────
# Sidebar
# ─────────────────────────────────────────────────────────────────────────────

with st.sidebar:
    st.title("⚙️ Controls")

    group_label = st.radio("Watchlist", options=list(GROUPS))
    symbol = st.text_input("Or a single symbol", value="").strip().upper()

    if st.button("🔄 Fetch latest news", use_container_width=True):
        with st.spinner("Fetching and scoring articles..."):
            post("/fetch", timeout=600)
        st.rerun()

    if st.button("🏷️ Reclassify market headlines", use_container_width=True):
        result = post("/reclassify")
        if result:
            st.success(result.get("message", "Done"))

    auto_refresh = st.toggle("Auto-refresh (5 min)", value=False)

# ─────────────────────────────────────────────────────────────────────────────
# Articles + aggregate
# ─────────────────────────────────────────────────────────────────────────────

articles = get_articles(GROUPS[group_label], symbol)
title_symbol = symbol or group_label
sentiment, confidence = aggregate_sentiment(articles)

st.title(f"📈 {title_symbol}")

col1, col2, col3 = st.columns(3)
with col1:
    st.metric("Articles", len(articles))
with col2:
    st.metric("Sentiment", f"{SENTIMENT_EMOJI.get(sentiment, '⚪')} {sentiment}")
with col3:
    st.metric("Confidence", f"{confidence}%")

show_weights = st.toggle("Explain with article weights", value=False, disabled=not articles)
weights = {}
if show_weights and articles:
    key = tuple((a["title"], a.get("description"), a.get("published_at")) for a in articles[:20])
    with st.spinner("Weighing articles..."):
        weights = get_weights(title_symbol, sentiment, confidence, key)

st.divider()

if not articles:
    st.info("No articles stored yet. Use 'Fetch latest news' in the sidebar.")
else:
    for index, article in enumerate(articles):
        label = article.get("ai_sentiment") or "Unscored"
        emoji = SENTIMENT_EMOJI.get(label, "⚪")
        published_at = article.get("published_at") or ""
        description = article.get("description") or ""

        with st.container():
            st.markdown(
                f"{emoji} **{label}** &nbsp;·&nbsp; `{article.get('symbol')}` &nbsp;·&nbsp; "
                f"{article.get('source') or 'unknown'} &nbsp;·&nbsp; *{time_ago(published_at)}*"
            )
            st.markdown(f"### [{article.get('title')}]({article.get('url')})")
            if article.get("ai_confidence") is not None:
                st.progress(article["ai_confidence"] / 100, text=f"Confidence: {article['ai_confidence']}%")
            if index in weights:
                w = weights[index]
                st.markdown(f"Influence: `{dots(w['weight'])}` — {w['reasoning']}")
            if description:
                st.caption(description[:200] + ("…" if len(description) > 200 else ""))
            st.divider()

if auto_refresh:
    time.sleep(REFRESH_INTERVAL)
    st.rerun()
