"""Prompt for transcript-request intent extraction on SMS turns."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Optional

from continuum.schemas.transcript import RankedTranscript

# Cheap gate in front of the extraction call.
INTENT_KEYWORDS = re.compile(
    r"\b(transcript|transcripts|email|send|call|calls|recent|yes|yep|yeah|yup|sure|please|"
    r"ok|okay|notes|summary|record|recording|copy|forward|share|last|previous|ago|"
    r"conversation|chat|meeting|talk)\b",
    re.IGNORECASE,
)

INTENT_INSTRUCTIONS = (
    "You extract contact details and transcript requests from a user's text message. "
    "You never invent data: use null when something is not stated."
)


def mentions_intent_keyword(text: str) -> bool:
    return bool(INTENT_KEYWORDS.search(text or ""))


def build_intent_prompt(
    user_text: str,
    full_name: Optional[str],
    email: Optional[str],
    history_text: str,
    transcripts: list[RankedTranscript],
    now_local: datetime,
) -> str:
    catalog = [
        {
            "calls_back": t.position,
            "timestamp": t.record.timestamp,
            "summary": t.record.summary,
        }
        for t in transcripts
    ]
    return f"""Analyze the user's latest text message: "{user_text}"
Current profile: Name={full_name or 'null'}, Email={email or 'null'}
CURRENT LOCAL DATE AND TIME: {now_local.strftime('%Y-%m-%d %H:%M (%A)')}

Recent chat context:
{history_text or '(none)'}

Past calls, newest first (calls_back 1 = most recent):
{json.dumps(catalog, default=str)}

Instructions:
1. Extract full_name and email if the user states them.
2. Set wants_transcript when the user asks for a call transcript or agrees ("yes") to receive one.
3. Describe WHICH call in reference:
   - A calendar date or relative day ("Feb 22", "2 days ago") -> on_date as YYYY-MM-DD, computed from the current local date.
   - "most recent", "last call", "yes" -> calls_back = 1. "2 calls back" -> calls_back = 2.
   - A topic ("the one about hiring") -> topic with the key words.
   Leave fields null when not stated. Do not pick a call yourself.
4. description: a short phrase for the email, e.g. "from your call on Feb 22nd regarding hiring".
"""
