"""Tests for anthropic client utilities (JSON parsing, fallbacks, cost, streaming call)."""

import json
import threading
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from interview_scheduler.exceptions import GenerationCancelled, LLMMalformedResponse, LLMUnavailable
from interview_scheduler.integrations.anthropic_client import (
    _calculate_cost,
    _clean_json_text,
    _extract_and_parse_json,
    _strip_markdown_wrapper,
    generate,
    parse_slot_proposal,
    propose_slots,
)
from interview_scheduler.prompts import FALLBACK_MESSAGE

PROPOSAL = {
    "message": "Here are two options for Acme.",
    "suggestedSlots": [
        {
            "date": "2026-03-10",
            "startTime": "14:15",
            "endTime": "15:15",
            "datetime": "2026-03-10T14:15:00",
            "reason": "Right after your stand-up",
            "applicationId": "6b1f4c1e-8f1a-4e36-9d9b-2b7f8a3c0d11",
            "companyName": "Acme Corp",
            "jobTitle": "Backend Engineer",
        }
    ],
}


class TestStripMarkdownWrapper:
    def test_strips_json_code_block(self):
        text = '```json\n{"key": "value"}\n```'
        assert _strip_markdown_wrapper(text) == '{"key": "value"}'

    def test_strips_plain_code_block(self):
        text = '```\n{"key": "value"}\n```'
        assert _strip_markdown_wrapper(text) == '{"key": "value"}'

    def test_no_wrapping_unchanged(self):
        text = '{"key": "value"}'
        assert _strip_markdown_wrapper(text) == text


class TestCleanJsonText:
    def test_removes_trailing_commas(self):
        text = '{"a": 1, "b": [1, 2, ], }'
        assert json.loads(_clean_json_text(text)) == {"a": 1, "b": [1, 2]}

    def test_replaces_nan(self):
        assert json.loads(_clean_json_text('{"a": NaN}')) == {"a": None}


class TestExtractAndParseJson:
    def test_plain_object(self):
        assert _extract_and_parse_json(json.dumps(PROPOSAL)) == PROPOSAL

    def test_prose_around_fenced_json(self):
        raw = f"Sure! Here is what I found:\n```json\n{json.dumps(PROPOSAL, indent=2)}\n```\nLet me know."
        assert _extract_and_parse_json(raw) == PROPOSAL

    def test_prose_around_bare_json(self):
        raw = f"Okay. {json.dumps(PROPOSAL)} Anything else?"
        assert _extract_and_parse_json(raw) == PROPOSAL

    def test_trailing_comma_recovered(self):
        assert _extract_and_parse_json('{"message": "hi", "suggestedSlots": [],}') == {
            "message": "hi",
            "suggestedSlots": [],
        }

    def test_no_json_raises(self):
        with pytest.raises(LLMMalformedResponse):
            _extract_and_parse_json("I could not find any times, sorry.")

    def test_array_rejected(self):
        with pytest.raises(LLMMalformedResponse):
            _extract_and_parse_json("[1, 2, 3]")


class TestParseSlotProposal:
    def test_fenced_reply_returns_embedded_object(self):
        raw = f"```json\n{json.dumps(PROPOSAL)}\n```"
        proposal = parse_slot_proposal(raw)
        assert proposal.message == PROPOSAL["message"]
        slot = proposal.suggested_slots[0]
        assert slot.model_dump(by_alias=True) == PROPOSAL["suggestedSlots"][0]

    def test_unparseable_degrades_to_fallback(self):
        proposal = parse_slot_proposal("The calendar looks quite busy this week.")
        assert proposal.message == FALLBACK_MESSAGE
        assert proposal.suggested_slots == []

    def test_company_question_is_kept(self):
        proposal = parse_slot_proposal("Which company would you like to schedule for? 1. Acme 2. Globex")
        assert proposal.message.startswith("Which company")
        assert proposal.suggested_slots == []


class TestCalculateCost:
    def test_haiku_pricing(self):
        usage = MagicMock(input_tokens=1_000_000, output_tokens=1_000_000)
        assert _calculate_cost(usage, "claude-haiku-4-5-20251001") == pytest.approx(4.80)

    def test_unknown_model_uses_default_pricing(self):
        usage = MagicMock(input_tokens=1_000_000, output_tokens=0)
        assert _calculate_cost(usage, "some-future-model") == pytest.approx(0.80)


def _fake_stream(chunks):
    stream = MagicMock()
    stream.text_stream = iter(chunks)
    stream.get_final_message.return_value = MagicMock(usage=MagicMock(input_tokens=100, output_tokens=20))
    manager = MagicMock()
    manager.__enter__.return_value = stream
    manager.__exit__.return_value = False
    return manager


class TestGenerate:
    def test_concatenates_stream(self):
        client = MagicMock()
        client.messages.stream.return_value = _fake_stream(['{"message": ', '"hi", "suggestedSlots": []}'])
        with patch("interview_scheduler.integrations.anthropic_client.get_client", return_value=client):
            text = generate("system", [{"role": "user", "content": "hello"}])
        assert text == '{"message": "hi", "suggestedSlots": []}'
        kwargs = client.messages.stream.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]

    def test_cancel_event_stops_generation(self):
        client = MagicMock()
        client.messages.stream.return_value = _fake_stream(["a", "b", "c"])
        cancel = threading.Event()
        cancel.set()
        with (
            patch("interview_scheduler.integrations.anthropic_client.get_client", return_value=client),
            pytest.raises(GenerationCancelled),
        ):
            generate("system", [{"role": "user", "content": "hello"}], cancel_event=cancel)

    def test_timeout_maps_to_llm_unavailable(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.stream.side_effect = anthropic.APITimeoutError(request=request)
        with (
            patch("interview_scheduler.integrations.anthropic_client.get_client", return_value=client),
            pytest.raises(LLMUnavailable),
        ):
            generate("system", [{"role": "user", "content": "hello"}])

    def test_api_error_maps_to_llm_unavailable(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.stream.side_effect = anthropic.APIConnectionError(request=request)
        with (
            patch("interview_scheduler.integrations.anthropic_client.get_client", return_value=client),
            pytest.raises(LLMUnavailable) as exc_info,
        ):
            generate("system", [{"role": "user", "content": "hello"}])
        assert "try again" in exc_info.value.message


class TestProposeSlots:
    def test_returns_typed_proposal(self):
        with patch(
            "interview_scheduler.integrations.anthropic_client.generate",
            return_value=f"Here you go:\n{json.dumps(PROPOSAL)}",
        ):
            proposal = propose_slots("system", [{"role": "user", "content": "next week for Acme"}])
        assert len(proposal.suggested_slots) == 1
        assert proposal.suggested_slots[0].company_name == "Acme Corp"

    def test_malformed_reply_never_raises(self):
        with patch("interview_scheduler.integrations.anthropic_client.generate", return_value="{not json"):
            proposal = propose_slots("system", [{"role": "user", "content": "hi"}])
        assert proposal.suggested_slots == []
