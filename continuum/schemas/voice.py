"""ElevenLabs personalization response."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DynamicVariables(BaseModel):
    memory_summary: str = ""
    caller_phone: str = ""
    channel: str = "call"
    recent_history: str = ""
    first_greeting: str = ""
    user_name: str = "Unknown"
    user_email: str = "Unknown"


class PersonalizeResponse(BaseModel):
    dynamic_variables: DynamicVariables = Field(default_factory=DynamicVariables)

    @classmethod
    def empty(cls) -> "PersonalizeResponse":
        return cls(dynamic_variables=DynamicVariables(user_name="", user_email=""))
