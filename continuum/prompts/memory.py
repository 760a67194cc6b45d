"""Prompt for the long-term memory archiver."""

from __future__ import annotations

from datetime import date

MEMORY_TAGS = ("NAME", "COMPANY", "FACT", "SUBJECT", "PREFERENCE", "GOAL", "ACTION")

ARCHIVER_INSTRUCTIONS = "You are a strict memory archiver for an AI assistant."


def build_archiver_prompt(
    old_memory: str,
    user_text: str,
    agent_text: str,
    channel_tag: str,
    today: date,
) -> str:
    tags = ", ".join(f"[{t}]" for t in MEMORY_TAGS)
    lines = [
        "CRITICAL RULE: NEVER delete, condense, reorder or alter any existing memory line. "
        "Every existing line must be returned exactly as it is, in the same order.",
        "Your job is ONLY to extract NEW, highly specific facts from the 'New conversation turn' "
        "and APPEND them to the bottom of the existing list.",
        "If the new turn contains no new specific facts, output the 'Existing memory summary' exactly as it was.",
        "",
        "STRICT FORMATTING RULE:",
        "1. Every new line MUST start with this exact structure: [CHANNEL] [YYYY-MM-DD] [TAG] Fact.",
        f"2. Replace [CHANNEL] with [{channel_tag}].",
        f"3. Replace [YYYY-MM-DD] with exactly today's date: [{today.isoformat()}].",
        f"4. Replace [TAG] with ONE of these categories: {tags}.",
        "5. Capture SPECIFIC details only. No vague summaries.",
        "",
        "Existing memory summary:",
        old_memory or "(empty)",
        "",
        "New conversation turn:",
        f"User: {user_text}",
        f"Assistant: {agent_text}",
        "",
        "Return the ENTIRE memory list (existing lines + new lines appended to the bottom). "
        "DO NOT omit any old information. Return only the list.",
    ]
    return "\n".join(lines)
