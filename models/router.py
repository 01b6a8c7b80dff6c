# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Keyword-based query classification for model routing."""

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

MATHEMATICAL_REASONING_KEYWORDS = (
    "calculate", "compute", "solve", "formula", "equation",
    "compound interest", "simple interest", "amortization", "amortize",
    "npv", "net present value", "irr", "internal rate of return",
    "roi", "return on investment", "break-even", "breakeven",
    "payoff strategy", "debt payoff", "payoff order", "optimal payoff",
    "avalanche method", "snowball method", "debt avalanche", "debt snowball",
    "monte carlo", "simulation", "probability distribution", "confidence interval",
    "optimization", "optimize", "optimal allocation", "maximize", "minimize",
    "sensitivity analysis", "what-if calculation", "scenario calculation",
    "future value", "present value", "time value", "discount rate",
    "annuity", "perpetuity", "cash flow", "dcf",
    "standard deviation", "variance", "correlation", "regression",
    "percentile", "probability", "expected value", "risk-adjusted",
)

SPEED_CRITICAL_KEYWORDS = (
    "categorize", "classify", "what category", "which category",
    "quick", "instant", "fast", "urgent", "immediately",
    "alert", "notify", "warning", "flag",
    "transaction type", "spending type", "expense type",
)

TRANSACTION_ALERT_KEYWORDS = (
    "new transaction", "just spent", "just paid", "just bought",
    "payment alert", "spending alert", "charge alert",
    "is this normal", "unusual", "suspicious", "fraud",
)

SOCIAL_SENTIMENT_KEYWORDS = (
    "sentiment", "social media", "twitter", "x posts", "trending",
    "viral", "buzz", "hype", "fomo", "fud", "retail sentiment",
    "what are people saying", "market mood", "crowd opinion",
    "bullish sentiment", "bearish sentiment", "social trends",
    "reddit", "wallstreetbets", "wsb", "meme stock",
    "social analysis", "public opinion", "investor sentiment",
)

MARKET_DATA_KEYWORDS = (
    "stock", "market", "crypto", "bitcoin", "eth", "nasdaq", "dow jones",
    "spy", "qqq", "price", "ticker", "trading", "invest", "portfolio",
    "cryptocurrency", "forex", "commodity", "gold", "oil", "futures",
    "real-time", "current price", "market trends", "stock performance",
    "market news", "earnings", "financial news",
)

SIMPLE_QUERY_KEYWORDS = (
    "what is", "define", "explain simply", "quick question",
    "how much", "when", "where", "list", "show me",
    "what are", "tell me about", "summary", "overview",
)

COMPLEX_QUERY_KEYWORDS = (
    "analyze", "strategy", "recommend", "plan",
    "should i", "help me decide", "compare", "evaluate",
    "forecast", "predict", "scenario", "what if",
    "deep dive", "comprehensive", "detailed analysis",
    "retirement plan", "tax strategy",
    "investment strategy", "financial plan",
)

DOCUMENT_ANALYSIS_KEYWORDS = (
    "tax document", "w-2", "w2", "1099", "1040", "k-1", "k1",
    "1099-div", "1099-b", "1099-int", "1099-misc", "1099-nec", "1099-r",
    "schedule c", "schedule d", "schedule e", "schedule k-1",
    "tax form", "tax return", "irs form",
    "bank statement", "brokerage statement", "investment statement",
    "portfolio statement", "account statement", "financial statement",
    "capital gains", "dividend", "stock sale", "securities",
    "cost basis", "realized gains", "unrealized gains",
    "trading statement", "trade confirmation", "annual report",
    "receipt", "invoice", "bill", "statement",
    "identity document", "passport", "driver license", "drivers license",
    "pay stub", "paystub", "kyc",
    "analyze document", "extract from", "read this",
    "uploaded file", "attached document", "this image",
)

MODEL_ROUTES = (
    "gemini-flash",
    "claude-sonnet",
    "perplexity",
    "gpt-5",
    "groq-instant",
    "deepseek-reasoner",
    "grok-sentiment",
)


@dataclass(frozen=True)
class Classification:
    type: str
    model: str
    confidence: float
    reasoning: str
    estimated_cost: float

    def as_dict(self) -> dict:
        return {
            "type": self.type,
            "model": self.model,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "estimatedCost": self.estimated_cost,
        }


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def classify_query(
    query: str,
    conversation_history: Optional[list] = None,
    has_attachment: bool = False,
) -> Classification:
    """Picks a query type and model route from keyword tables, first match wins."""
    lower_query = query.lower()
    word_count = len(re.split(r"\s+", query))

    if _contains_any(lower_query, SOCIAL_SENTIMENT_KEYWORDS):
        return Classification(
            "social_sentiment",
            "grok-sentiment",
            0.95,
            "Query requires real-time social sentiment analysis via xAI Grok",
            0.15,
        )

    is_alert_like = _contains_any(lower_query, SPEED_CRITICAL_KEYWORDS) or _contains_any(
        lower_query, TRANSACTION_ALERT_KEYWORDS
    )
    if is_alert_like and word_count <= 20:
        return Classification(
            "speed_critical",
            "groq-instant",
            0.95,
            "Speed-critical query requiring sub-100ms response via Groq LPU",
            0.01,
        )

    if _contains_any(lower_query, MATHEMATICAL_REASONING_KEYWORDS):
        return Classification(
            "mathematical_reasoning",
            "deepseek-reasoner",
            0.95,
            "Mathematical/financial calculation requiring Deepseek Reasoner chain-of-thought",
            0.02,
        )

    if _contains_any(lower_query, DOCUMENT_ANALYSIS_KEYWORDS) or has_attachment:
        return Classification(
            "document_analysis",
            "gpt-5",
            0.95,
            "Query involves document analysis requiring GPT-5 vision capabilities",
            0.40,
        )

    if _contains_any(lower_query, MARKET_DATA_KEYWORDS):
        return Classification(
            "market_data",
            "perplexity",
            0.95,
            "Query contains market data keywords requiring real-time information",
            0.3,
        )

    has_complex_keywords = _contains_any(lower_query, COMPLEX_QUERY_KEYWORDS)
    if (
        _contains_any(lower_query, SIMPLE_QUERY_KEYWORDS)
        and word_count <= 15
        and not has_complex_keywords
    ):
        return Classification(
            "simple",
            "gemini-flash",
            0.85,
            "Short query with simple keywords, no complex reasoning required",
            0.05,
        )

    is_long_query = word_count > 20
    has_multiple_sentences = len(re.split(r"[.!?]", query)) > 2
    conversation_depth = len(conversation_history or [])
    if has_complex_keywords or is_long_query or has_multiple_sentences or conversation_depth > 5:
        return Classification(
            "complex",
            "claude-sonnet",
            0.9,
            "Query requires advanced reasoning, financial analysis, or strategic planning",
            0.5,
        )

    return Classification(
        "analytical",
        "gemini-flash",
        0.7,
        "Standard analytical query, balanced approach",
        0.05,
    )


def apply_overrides(
    classification: Classification,
    *,
    force_model: Optional[str] = None,
    user_tier: Optional[str] = None,
    previous_errors: Optional[list[str]] = None,
) -> Classification:
    if force_model:
        if force_model not in MODEL_ROUTES:
            raise ValueError(f"Unknown model route: {force_model}")
        return dataclasses.replace(
            classification,
            model=force_model,
            reasoning=f"Forced to {force_model}: {classification.reasoning}",
        )

    if user_tier == "free" and classification.type not in ("market_data", "document_analysis"):
        return dataclasses.replace(
            classification,
            model="gemini-flash",
            reasoning="Free tier: Using efficient model. Upgrade for advanced reasoning.",
        )

    errors = previous_errors or []
    if classification.model == "claude-sonnet" and any("claude" in err for err in errors):
        return dataclasses.replace(
            classification,
            model="gemini-flash",
            reasoning="Fallback to Gemini due to Claude availability issues",
        )
    if classification.model == "gpt-5" and any(
        "openai" in err or "gpt" in err for err in errors
    ):
        return dataclasses.replace(
            classification,
            model="gemini-flash",
            reasoning="Fallback to Gemini due to GPT-5 availability issues",
        )
    return classification
