"""
galley/features/feedback/service.py

Guest feedback sentiment.

Scores are derived from star ratings on a -100..100 scale (3 stars = 0).
The numbers are always computed locally; the model adds a written
analysis which falls back to the computed summary.
"""

import json
from typing import Dict, List, Optional

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.operations import FeedbackEntry, SentimentRequest

NEUTRAL_RATING = 3.0
TREND_WINDOW = 10
TREND_DELTA = 0.3

CATEGORY_KEYWORDS = {
    "Food Quality": ("food", "taste", "meal", "dish", "flavor", "quality"),
    "Service Quality": ("service", "staff", "server", "waiter", "friendly", "attentive"),
    "Atmosphere": ("atmosphere", "ambiance", "environment", "clean", "decor", "noise"),
    "Value for Money": ("price", "value", "worth", "expensive", "cheap", "cost"),
    "Overall Experience": ("experience", "overall", "recommend", "return", "satisfied"),
}

IMPROVEMENT_SUGGESTIONS = {
    "Food Quality": [
        "Implement quality control checks for food temperature",
        "Review portion consistency across all dishes",
        "Add more vegetarian and dietary-specific options",
    ],
    "Service Quality": [
        "Increase staff during peak hours",
        "Implement service training program",
        "Set up better table management system",
    ],
    "Atmosphere": [
        "Improve lighting and acoustics",
        "Regular deep cleaning schedule",
        "Update decor and furniture",
    ],
    "Value for Money": [
        "Review pricing strategy for competitive positioning",
        "Introduce value meal options",
        "Implement loyalty rewards program",
    ],
}

SNIPPET_LENGTH = 120


def average_rating(entries: List[FeedbackEntry]) -> float:
    ratings = [e.rating for e in entries if e.rating]
    return sum(ratings) / len(ratings) if ratings else NEUTRAL_RATING


def rating_to_score(rating: float) -> int:
    return round((rating - NEUTRAL_RATING) * 50)


def _snippet(entry: FeedbackEntry) -> str:
    text = entry.content.strip()
    return text if len(text) <= SNIPPET_LENGTH else text[: SNIPPET_LENGTH - 3] + "..."


def trend_of(entries: List[FeedbackEntry]) -> str:
    ordered = sorted(entries, key=lambda e: e.date or "")
    recent = average_rating(ordered[-TREND_WINDOW:])
    older = average_rating(ordered[:TREND_WINDOW])
    if recent > older + TREND_DELTA:
        return "improving"
    if recent < older - TREND_DELTA:
        return "declining"
    return "stable"


def category_breakdown(entries: List[FeedbackEntry], focus_areas: Optional[List[str]] = None) -> Dict[str, dict]:
    categories = CATEGORY_KEYWORDS
    if focus_areas:
        wanted = {area.lower() for area in focus_areas}
        categories = {
            name: words for name, words in CATEGORY_KEYWORDS.items()
            if name.lower() in wanted or any(w in wanted for w in words)
        } or CATEGORY_KEYWORDS

    breakdown = {}
    for name, keywords in categories.items():
        relevant = [e for e in entries if any(k in e.content.lower() for k in keywords)]
        negatives = [e for e in relevant if e.rating is not None and e.rating <= 2]
        positives = [e for e in relevant if e.rating is not None and e.rating >= 4]
        breakdown[name] = {
            "score": rating_to_score(average_rating(relevant)),
            "volume": len(relevant),
            "keyIssues": [_snippet(e) for e in negatives[:3]],
            "positiveHighlights": [_snippet(e) for e in positives[:3]],
            "improvementSuggestions": IMPROVEMENT_SUGGESTIONS.get(name, ["General service improvements needed"])
            if negatives
            else [],
        }
    return breakdown


def sentiment_summary(score: int, trend: str, count: int) -> str:
    if score > 20:
        sentiment = "positive"
    elif score < -20:
        sentiment = "negative"
    else:
        sentiment = "neutral"

    if score > 50:
        tail = "Strong customer satisfaction with multiple positive highlights."
    elif score < -30:
        tail = "Significant customer concerns requiring immediate attention."
    else:
        tail = "Mixed feedback with opportunities for improvement."
    return f"Overall sentiment is {sentiment} ({score}/100) based on {count} reviews, with a {trend} trend. {tail}"


def compute_sentiment(req: SentimentRequest) -> dict:
    entries = req.feedback_data
    score = rating_to_score(average_rating(entries))
    trend = trend_of(entries)
    return {
        "overallSentiment": {
            "score": score,
            "trend": trend,
            "confidence": min(95, len(entries) * 5 + 60),
            "summary": sentiment_summary(score, trend, len(entries)),
        },
        "categoryBreakdown": category_breakdown(entries, req.focus_areas),
    }


def build_sentiment_prompt(req: SentimentRequest) -> str:
    feedback = [e.model_dump(by_alias=True, exclude_none=True) for e in req.feedback_data]
    return f"""As an expert customer experience analyst for restaurants, analyze this customer feedback.

FEEDBACK DATA:
{json.dumps(feedback, indent=2)}

ANALYSIS PARAMETERS:
- Type: {req.analysis_type}
- Timeframe: {req.timeframe}
- Focus Areas: {', '.join(req.focus_areas) or 'All aspects'}

Cover overall sentiment and its drivers, food, service, atmosphere and value,
urgent issues, opportunities and strengths, and a prioritized list of actions
with owners and success metrics."""


def fallback_insights(req: SentimentRequest) -> str:
    return compute_sentiment(req)["overallSentiment"]["summary"]


SENTIMENT_TASK = AITask(
    name="feedback.sentiment",
    build_prompt=build_sentiment_prompt,
    fallback=fallback_insights,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.8, max_output_tokens=4096),
    model_tier="pro",
)


async def analyze_sentiment(req: SentimentRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(SENTIMENT_TASK, req, client, user_id=user_id)
    return outcome.envelope(
        analysis=compute_sentiment(req),
        analysisType=req.analysis_type,
        processedFeedbackCount=len(req.feedback_data),
        aiInsights=outcome.data,
    )
