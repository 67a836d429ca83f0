"""Intent classifier: maps a query to a target agent via OpenAI, with a rule-based fallback.

The LLM path is bounded by a timeout and never retried. Anything unusable
(timeout, API error, bad JSON, low confidence, dead target) is replaced by
``fallback_classification``, which is pure and needs no network.
"""
import asyncio
import json
import logging
import re
from typing import Callable, List, Optional, Tuple

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from .config import settings
from .conversation import ConversationContext
from .errors import ClassificationError, ClassificationTimeout
from .protocol import Classification

logger = logging.getLogger(__name__)

HISTORY_TURNS = 4
FALLBACK_CONFIDENCE = 50

PRODUCT_NUMBER_RE = re.compile(r"\b\d{6,}\b")

INTENT_PROMPT = """You are the intent router for a warehouse operations assistant. Read the user's query and decide which agent should answer it. Respond in JSON.

{agent_context}
Intent labels: product_location_search, inventory_count_query, inventory_ranking_analysis, comparison_analysis, space_analysis, expiration_check, comprehensive_summary, multi_step_query, general_warehouse_query.

Response format (always valid JSON):
{"intent": "<label>", "confidence": <0-100>, "targetAgent": "<agent id from the list above>", "parameters": {...}, "complexity": "simple|moderate|complex", "reasoning": ["short step", "..."]}

Rules:
- targetAgent MUST be one of the agent ids listed above.
- Put identifiers you can read from the query into parameters (productNumber, areaId, licensePlate, palletId).
- Use "complex" for queries with several steps ("and", "then"), "moderate" for comparisons.
- Lower confidence when the query is vague.

Examples:
{examples}

Conversation so far: last intent = {last_intent}, last agent = {last_agent}

IMPORTANT: Always respond with valid JSON only. No markdown, no code blocks."""

FEW_SHOT: List[Tuple[str, dict]] = [
    ("Where is product 9375387?",
     {"intent": "product_location_search", "confidence": 95, "parameters": {"productNumber": "9375387"},
      "complexity": "simple"}),
    ("How many pallets of flour do we have?",
     {"intent": "inventory_count_query", "confidence": 85, "parameters": {"productDescription": "flour"},
      "complexity": "simple"}),
    ("What product has the highest quantity?",
     {"intent": "inventory_ranking_analysis", "confidence": 90, "parameters": {}, "complexity": "simple"}),
    ("Analyze warehouse space utilization",
     {"intent": "space_analysis", "confidence": 90, "parameters": {}, "complexity": "moderate"}),
    ("Give me a warehouse summary",
     {"intent": "comprehensive_summary", "confidence": 90, "parameters": {}, "complexity": "moderate"}),
    ("Compare frozen vs dry areas then show top 3 expiring",
     {"intent": "multi_step_query", "confidence": 80, "parameters": {"areas": ["F", "D"], "limit": 3},
      "complexity": "complex"}),
]


def _format_examples(target_agent: str) -> str:
    lines = []
    for query, answer in FEW_SHOT:
        payload = dict(answer, targetAgent=target_agent or "<agent id>")
        lines.append(f'- "{query}" → {json.dumps(payload)}')
    return "\n".join(lines)


# ── Deterministic fallback ──────────────────────────────────

_FALLBACK_RULES: List[Tuple[Callable[[str], bool], str]] = [
    (lambda q: "where is" in q or PRODUCT_NUMBER_RE.search(q) is not None, "product_location_search"),
    (lambda q: "how many" in q or "count" in q, "inventory_count_query"),
    (lambda q: "highest" in q or "most" in q, "inventory_ranking_analysis"),
    (lambda q: "summary" in q or "overview" in q, "comprehensive_summary"),
    (lambda q: "space" in q, "space_analysis"),
    (lambda q: "expire" in q, "expiration_check"),
]

DEFAULT_INTENT = "general_warehouse_query"


def fallback_classification(query: str, registry) -> Classification:
    """Rule-based classification. Pure: same query and registry give the same result."""
    lower = query.lower()
    intent = next((label for test, label in _FALLBACK_RULES if test(lower)), DEFAULT_INTENT)

    healthy = registry.get_healthy_agents()
    target = healthy[0].agent_id if healthy else ""

    parameters = {"query": query}
    match = PRODUCT_NUMBER_RE.search(query)
    if match:
        parameters["product_number"] = match.group(0)

    complexity = "complex" if (" and " in lower or " then " in lower) else "simple"
    return Classification(
        intent=intent,
        confidence=FALLBACK_CONFIDENCE,
        target_agent=target,
        parameters=parameters,
        complexity=complexity,
        reasoning=("Rule-based fallback",),
    )


def routing_problem(classification: Classification, registry, threshold: int) -> Optional[str]:
    """Why a classification must not be dispatched, or None when it can be."""
    if classification.confidence < threshold:
        return f"Confidence {classification.confidence} below threshold {threshold}"
    entry = registry.get_agent(classification.target_agent)
    if entry is None:
        return f"Target agent '{classification.target_agent}' is not registered"
    if not entry.healthy:
        return f"Target agent '{classification.target_agent}' is unhealthy"
    return None


# ── LLM classifier ──────────────────────────────────────────

class IntentClassifier:
    def __init__(self, registry, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None,
                 timeout_s: Optional[float] = None, confidence_threshold: Optional[int] = None):
        self.registry = registry
        if client is None and settings.openai_api_key:
            client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        self._client = client
        self.model = model or settings.intent_model
        self.timeout_s = timeout_s if timeout_s is not None else settings.classifier_timeout_s
        self.confidence_threshold = (confidence_threshold if confidence_threshold is not None
                                     else settings.confidence_threshold)

    @property
    def llm_enabled(self) -> bool:
        return self._client is not None

    def build_messages(self, query: str, context: Optional[ConversationContext] = None) -> List[dict]:
        healthy = self.registry.get_healthy_agents()
        system_prompt = INTENT_PROMPT.replace("{agent_context}", self.registry.generate_prompt_context())
        system_prompt = system_prompt.replace("{examples}", _format_examples(healthy[0].agent_id if healthy else ""))
        system_prompt = system_prompt.replace("{last_intent}", (context and context.last_intent) or "none")
        system_prompt = system_prompt.replace("{last_agent}", (context and context.last_agent) or "none")

        messages = [{"role": "system", "content": system_prompt}]
        if context is not None:
            for turn in context.recent_turns(HISTORY_TURNS):
                messages.append({"role": "user" if turn.role == "user" else "assistant", "content": turn.content})
        messages.append({"role": "user", "content": query})
        return messages

    async def classify(self, query: str, context: Optional[ConversationContext] = None) -> Classification:
        """Always returns a Classification; falls back instead of raising."""
        sid = context.session_id if context else "-"
        if not self.llm_enabled:
            return fallback_classification(query, self.registry).with_note("LLM classifier not configured")

        try:
            result = await self._classify_llm(query, context)
        except ClassificationTimeout as e:
            logger.warning(f"[{sid}] {e}, using fallback")
            return fallback_classification(query, self.registry).with_note(str(e))
        except ClassificationError as e:
            logger.warning(f"[{sid}] Classification failed: {e}, using fallback")
            return fallback_classification(query, self.registry).with_note(f"LLM classification unusable: {e}")

        problem = routing_problem(result, self.registry, self.confidence_threshold)
        if problem:
            logger.info(f"[{sid}] Discarding LLM classification: {problem}")
            return fallback_classification(query, self.registry).with_note(
                f"{problem}; substituted rule-based fallback")

        logger.info(f"[{sid}] Intent: {result.intent} -> {result.target_agent} ({result.confidence}%)")
        return result

    async def _classify_llm(self, query: str, context: Optional[ConversationContext]) -> Classification:
        messages = self.build_messages(query, context)
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ClassificationTimeout(f"LLM classifier timed out after {self.timeout_s:g}s") from e
        except openai.OpenAIError as e:
            raise ClassificationError(f"LLM request failed: {e}") from e

        try:
            raw = (response.choices[0].message.content or "").strip()
        except (IndexError, AttributeError, TypeError) as e:
            raise ClassificationError("response has no message content") from e
        logger.debug(f"Intent raw: {raw[:200]}")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ClassificationError("response is not valid JSON") from e
        if not isinstance(data, dict):
            raise ClassificationError("response is not a JSON object")

        try:
            return Classification.model_validate(data)
        except ValidationError as e:
            raise ClassificationError(f"response failed validation ({e.error_count()} error(s))") from e
