"""Anthropic API client for slot proposals: streaming call, JSON extraction, cost logging.

``propose_slots`` is the only entry point the scheduling core uses. It always
returns a typed ``SlotProposal``: unparseable model output degrades to a
fallback message with no slots instead of an error.
"""

import json
import logging
import re
import threading

import anthropic

from ..config import settings
from ..exceptions import GenerationCancelled, LLMMalformedResponse, LLMUnavailable
from ..prompts import FALLBACK_ASK_COMPANY, FALLBACK_MESSAGE
from ..scheduling.schemas import SlotProposal
from .validation import validate_slot_proposal

logger = logging.getLogger(__name__)

PRICING = {
    "claude-haiku-4-5-20251001": {"input": 0.80, "output": 4.00},
    "claude-sonnet-4-5-20250929": {"input": 3.00, "output": 15.00},
}

_client: anthropic.Anthropic | None = None


def get_client() -> anthropic.Anthropic:
    """Get or create the singleton Anthropic client.

    Retries are disabled: a timed-out proposal is surfaced as "try again"
    rather than silently regenerated.
    """
    global _client
    if _client is None:
        _client = anthropic.Anthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
    return _client


def _calculate_cost(usage: anthropic.types.Usage, model_id: str) -> float:
    pricing = PRICING.get(model_id, PRICING["claude-haiku-4-5-20251001"])
    input_cost = (usage.input_tokens / 1_000_000) * pricing["input"]
    output_cost = (usage.output_tokens / 1_000_000) * pricing["output"]
    return round(input_cost + output_cost, 6)


def _clean_json_text(text: str) -> str:
    """Fix common LLM JSON output issues."""
    # Trailing commas before } or ]
    text = re.sub(r",\s*([}\]])", r"\1", text)
    text = re.sub(r"\bNaN\b", "null", text)
    return text


def _strip_markdown_wrapper(text: str) -> str:
    """Return the body of the first ```json ... ``` (or bare ```) fence, if any."""
    text = text.strip()
    if "```" in text:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
        if match:
            return match.group(1).strip()
    return text


def _extract_and_parse_json(raw_text: str) -> dict:
    """Extract the JSON object from a model reply.

    Tolerates prose before or after the object and Markdown fences: the
    candidate is the substring from the first ``{`` to the last ``}``.
    """
    text = _strip_markdown_wrapper(raw_text)

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start : end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(_clean_json_text(text))
        except json.JSONDecodeError as exc:
            raise LLMMalformedResponse(f"No valid JSON found in model reply: {exc.msg}") from exc

    if not isinstance(parsed, dict):
        raise LLMMalformedResponse(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _fallback_proposal(raw_text: str) -> SlotProposal:
    """Salvage a reply that was prose instead of JSON."""
    lowered = raw_text.lower()
    if "which company" in lowered or "what company" in lowered:
        # The model asked the right question, just not in JSON
        message = re.sub(r'[{}"\[\]]', "", raw_text).strip()
        return SlotProposal(message=message or FALLBACK_ASK_COMPANY, suggested_slots=[])
    return SlotProposal(message=FALLBACK_MESSAGE, suggested_slots=[])


def parse_slot_proposal(raw_text: str) -> SlotProposal:
    """Turn raw model text into a ``SlotProposal``. Never raises."""
    try:
        raw = _extract_and_parse_json(raw_text)
    except LLMMalformedResponse as exc:
        logger.warning("Failed to parse model reply: %s", exc.message)
        logger.debug("Raw reply was: %r", raw_text[:500])
        return _fallback_proposal(raw_text)
    return validate_slot_proposal(raw)


def generate(
    system_prompt: str,
    messages: list[dict],
    *,
    model_id: str | None = None,
    max_tokens: int | None = None,
    cancel_event: threading.Event | None = None,
) -> str:
    """Single blocking round-trip to the model, returning the concatenated text.

    The reply is streamed so that setting ``cancel_event`` (the user navigated
    away) closes the connection between chunks.
    """
    model_id = model_id or settings.llm_model
    client = get_client()
    chunks: list[str] = []

    try:
        with client.messages.stream(
            model=model_id,
            max_tokens=max_tokens or settings.llm_max_tokens,
            system=system_prompt,
            messages=messages,
        ) as stream:
            for text in stream.text_stream:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Slot proposal cancelled after %d chunks", len(chunks))
                    raise GenerationCancelled("Slot proposal cancelled")
                chunks.append(text)
            final = stream.get_final_message()
    except anthropic.APITimeoutError as exc:
        logger.warning("Model call timed out after %.0fs", settings.llm_timeout_seconds)
        raise LLMUnavailable() from exc
    except anthropic.APIError as exc:
        logger.error("Model call failed: %s", exc)
        raise LLMUnavailable() from exc

    logger.info(
        "Slot proposal generated (model=%s, in=%d, out=%d, cost=$%.5f)",
        model_id,
        final.usage.input_tokens,
        final.usage.output_tokens,
        _calculate_cost(final.usage, model_id),
    )
    return "".join(chunks)


def propose_slots(
    system_prompt: str,
    messages: list[dict],
    *,
    cancel_event: threading.Event | None = None,
) -> SlotProposal:
    """The LLM collaborator: prompt in, typed ``{message, suggestedSlots}`` out."""
    raw_text = generate(system_prompt, messages, cancel_event=cancel_event)
    return parse_slot_proposal(raw_text)
