"""Pydantic validation schemas for model reply parsing.

Validates and coerces the slot proposal into a strict structure.
Missing fields get sensible defaults; malformed slots are dropped.
This is the last line of defense against malformed AI output.
"""

import logging
import re

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..prompts import DEFAULT_PROPOSAL_MESSAGE
from ..scheduling.schemas import SlotProposal, SuggestedSlot

logger = logging.getLogger(__name__)

MAX_SUGGESTED_SLOTS = 3

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


# ── Suggested slot ────────────────────────────────────────────────────


class SuggestedSlotAI(BaseModel):
    """One slot as the model writes it (camelCase keys)."""

    date: str
    startTime: str
    endTime: str = ""
    datetime: str = ""
    reason: str = ""
    applicationId: str | None = None
    companyName: str | None = None
    jobTitle: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, v: object) -> str:
        s = str(v).strip()
        if not _DATE_RE.match(s):
            raise ValueError(f"bad date {s!r}")
        return s

    @field_validator("startTime", mode="before")
    @classmethod
    def check_start(cls, v: object) -> str:
        s = str(v).strip()[:5]
        if not _TIME_RE.match(s):
            raise ValueError(f"bad start time {s!r}")
        return s.zfill(5)

    @field_validator("endTime", mode="before")
    @classmethod
    def trim_end(cls, v: object) -> str:
        s = str(v).strip()[:5] if v else ""
        return s.zfill(5) if _TIME_RE.match(s) else ""

    @field_validator("reason", "datetime", mode="before")
    @classmethod
    def coerce_string(cls, v: object) -> str:
        return str(v) if v else ""

    @field_validator("applicationId", "companyName", "jobTitle", mode="before")
    @classmethod
    def blank_to_none(cls, v: object) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        return s or None


# ── Proposal response ─────────────────────────────────────────────────


class SlotProposalAIResponse(BaseModel):
    message: str = DEFAULT_PROPOSAL_MESSAGE
    suggestedSlots: list = Field(default_factory=list)

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, v: object) -> str:
        s = str(v).strip() if v else ""
        return s or DEFAULT_PROPOSAL_MESSAGE

    @field_validator("suggestedSlots", mode="before")
    @classmethod
    def coerce_slots(cls, v: object) -> list:
        if isinstance(v, dict):
            return [v]
        return v if isinstance(v, list) else []


# ── Validation entry point ────────────────────────────────────────────


def validate_slot_proposal(raw: dict) -> SlotProposal:
    """Validate and coerce a proposal dict. Never raises - logs warnings for issues."""
    envelope = SlotProposalAIResponse.model_validate(raw)

    slots: list[SuggestedSlot] = []
    for item in envelope.suggestedSlots:
        if not isinstance(item, dict):
            logger.warning("Dropping non-object suggested slot: %r", item)
            continue
        try:
            checked = SuggestedSlotAI.model_validate(item)
        except ValidationError as exc:
            logger.warning("Dropping malformed suggested slot %r: %s", item, exc.errors()[0]["msg"])
            continue
        slots.append(SuggestedSlot.model_validate(checked.model_dump()))

    if len(slots) > MAX_SUGGESTED_SLOTS:
        logger.info("Model proposed %d slots, keeping the first %d", len(slots), MAX_SUGGESTED_SLOTS)
        slots = slots[:MAX_SUGGESTED_SLOTS]

    return SlotProposal(message=envelope.message, suggested_slots=slots)
