"""
Recommendation Orchestrator

Asks the completion service to pick and justify books from a candidate
set, then passes its answer through a validation gate before anything is
returned.

Flow:
1. No candidates: fixed "no results" summary, no external call
2. Prompt with the first candidates (id, title, author, subject, popularity)
3. One completion call with a fixed timeout, no retry
4. Parse the reply as {summary, recommendations: [...]}
5. Validation gate: keep only ids present in the candidate set, drop
   duplicates, truncate to the limit. Title/author/subject are copied from
   the catalog record, only the reason comes from the model
6. Fallback when the call or parse fails, or nothing survives the gate:
   first `limit` candidates in ranking order with a templated reason

Single-book Q&A lives here too since it uses the same completion client.
"""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from library_api.exceptions import UpstreamUnavailable
from library_api.schemas.book import CatalogItem
from library_api.schemas.recommendation import Recommendation, RecommendationResult
from library_api.schemas.search import CandidateSet
from library_api.services.completion import CompletionClient
from library_api.services.prompts import render_answer_prompt, render_recommendation_prompt

logger = logging.getLogger(__name__)

NO_RESULTS_SUMMARY = "抱歉，我们的图书馆中没有找到与您查询相关的书籍"
CATALOG_UNAVAILABLE_ANSWER = "抱歉，图书馆目录暂时无法访问，请稍后再试"

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


# =============================================================================
# Templated Text
# =============================================================================

def default_summary(query: str) -> str:
    return f'根据您的查询"{query}"，为您推荐以下相关图书'


def fallback_reason(item: CatalogItem) -> str:
    """Reason used when the model did not provide one, built from the subject."""
    if item.subject:
        return f"{item.subject}类热门图书，适合您的需求"
    return "热门推荐图书"


def generic_description(item: CatalogItem) -> str:
    """Answer substituted when the completion service cannot answer a question."""
    return f"这是关于《{item.title}》的信息"


def book_summary(item: CatalogItem) -> str:
    publisher = item.publisher or "未知出版社"
    if item.subject:
        return f"{item.subject}类图书，由{publisher}出版"
    return f"由{publisher}出版"


# =============================================================================
# Reply Parsing
# =============================================================================

class ModelRecommendation(BaseModel):
    """One entry of the model's reply. Only id and reason are used."""

    id: str
    reason: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(int(v)) if float(v).is_integer() else str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("reason", mode="before")
    @classmethod
    def none_reason(cls, v: Any) -> Any:
        return "" if v is None else v


class ModelReply(BaseModel):
    summary: str = ""
    recommendations: list[ModelRecommendation] = []


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Accepts a bare object, a ```json fenced block, or an object surrounded
    by prose (outermost braces).

    Raises:
        ValueError: if no JSON object can be decoded
    """
    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ValueError("No JSON object found in completion reply")


def parse_reply(text: str) -> ModelReply:
    """
    Parse a model reply, skipping recommendation entries that are not
    well-formed instead of rejecting the whole reply.

    Raises:
        UpstreamUnavailable: if the reply is not a JSON object
    """
    try:
        data = extract_json_object(text)
    except ValueError as e:
        logger.warning(f"Unparseable recommendation reply: {text[:200]!r}")
        raise UpstreamUnavailable("Completion reply is not valid JSON") from e

    raw_recommendations = data.get("recommendations")
    if not isinstance(raw_recommendations, list):
        raw_recommendations = []

    picks = []
    for entry in raw_recommendations:
        try:
            picks.append(ModelRecommendation.model_validate(entry))
        except ValidationError:
            logger.debug(f"Skipping malformed recommendation entry: {entry!r}")

    summary = data.get("summary")
    return ModelReply(
        summary=summary.strip() if isinstance(summary, str) else "",
        recommendations=picks,
    )


# =============================================================================
# Validation Gate
# =============================================================================

def validate_recommendations(
    picks: list[ModelRecommendation],
    candidates: CandidateSet,
    limit: int,
) -> list[Recommendation]:
    """
    Keep picks whose id is in the candidate set, first occurrence only,
    at most `limit`. Descriptive fields come from the catalog record.
    """
    by_id = {item.id: item for item in candidates.items}
    accepted: list[Recommendation] = []
    seen: set[str] = set()

    for pick in picks:
        item = by_id.get(pick.id)
        if item is None:
            logger.info(f"Dropping recommendation for unknown id {pick.id!r}")
            continue
        if pick.id in seen:
            continue
        seen.add(pick.id)
        accepted.append(
            Recommendation(
                id=item.id,
                title=item.title,
                author=item.author,
                subject=item.subject,
                reason=pick.reason.strip() or fallback_reason(item),
            )
        )
        if len(accepted) >= limit:
            break

    return accepted


def fallback_recommendations(
    query: str,
    candidates: CandidateSet,
    limit: int,
) -> RecommendationResult:
    """Deterministic picks: the first `limit` candidates in ranking order."""
    return RecommendationResult(
        summary=default_summary(query),
        recommendations=[
            Recommendation(
                id=item.id,
                title=item.title,
                author=item.author,
                subject=item.subject,
                reason=fallback_reason(item),
            )
            for item in candidates.items[:limit]
        ],
        source="fallback",
    )


# =============================================================================
# Orchestrator
# =============================================================================

class RecommendationOrchestrator:
    """Model-backed recommendations and answers with deterministic fallbacks."""

    def __init__(
        self,
        completion: CompletionClient,
        prompt_candidate_limit: int = 20,
        recommendation_timeout: float = 30.0,
        answer_timeout: float = 20.0,
        recommendation_max_tokens: int = 1500,
        answer_max_tokens: int = 500,
    ) -> None:
        self.completion = completion
        self.prompt_candidate_limit = prompt_candidate_limit
        self.recommendation_timeout = recommendation_timeout
        self.answer_timeout = answer_timeout
        self.recommendation_max_tokens = recommendation_max_tokens
        self.answer_max_tokens = answer_max_tokens

    async def recommend(
        self,
        query: str,
        candidates: CandidateSet,
        limit: int,
    ) -> RecommendationResult:
        """
        Recommend up to `limit` books drawn from `candidates`.

        Every returned id is a member of candidates, whatever the
        completion service replies.
        """
        if candidates.is_empty:
            return RecommendationResult(summary=NO_RESULTS_SUMMARY, source="empty")

        prompt = render_recommendation_prompt(
            query,
            candidates.items[: self.prompt_candidate_limit],
            limit,
        )

        try:
            text = await self.completion.complete(
                prompt["system"],
                prompt["user"],
                timeout=self.recommendation_timeout,
                max_tokens=self.recommendation_max_tokens,
            )
            reply = parse_reply(text)
        except UpstreamUnavailable as e:
            logger.warning(f"Recommendation fallback for '{query}': {e.message}")
            return fallback_recommendations(query, candidates, limit)

        accepted = validate_recommendations(reply.recommendations, candidates, limit)
        if not accepted:
            logger.warning(f"No valid model picks for '{query}', using fallback")
            return fallback_recommendations(query, candidates, limit)

        logger.info(
            f"Model recommended {len(accepted)} books for '{query}' "
            f"({len(reply.recommendations) - len(accepted)} rejected)"
        )
        return RecommendationResult(
            summary=reply.summary or default_summary(query),
            recommendations=accepted,
            source="model",
        )

    async def answer(self, item: CatalogItem, question: str) -> str | None:
        """Answer a question about one book, or None if the service fails."""
        prompt = render_answer_prompt(item, question)
        try:
            text = await self.completion.complete(
                prompt["system"],
                prompt["user"],
                timeout=self.answer_timeout,
                max_tokens=self.answer_max_tokens,
            )
        except UpstreamUnavailable as e:
            logger.warning(f"No answer for book {item.id}: {e.message}")
            return None
        return text.strip()
