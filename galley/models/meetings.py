"""
galley/models/meetings.py

Meeting transcripts, speaker separation and the analyses the model
returns for them.
"""

from typing import List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator, model_validator

from galley.models.common import CamelModel, coerce_number, coerce_record_list, coerce_str_list, coerce_tone

Number = Union[int, float]
Priority = Literal["low", "medium", "high"]


def _priority(value) -> str:
    if isinstance(value, str) and value.strip().lower() in ("low", "medium", "high"):
        return value.strip().lower()
    return "medium"


# ---------------------------------------------------------------------------
# ai-meeting-transcription
# ---------------------------------------------------------------------------

class MeetingTranscriptionRequest(CamelModel):
    audio_data: Optional[str] = None
    transcript: Optional[str] = None
    meeting_title: str = "Team Meeting"
    participants: List[str] = ["Team Member 1", "Team Member 2"]
    duration: int = Field(default=300, gt=0, description="seconds")
    language: str = "en"
    mime_type: str = "audio/webm"


class MeetingActionItem(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    task: str = Field(min_length=1)
    assignee: Optional[str] = None
    due_date: Optional[str] = None
    priority: Priority = "medium"
    completed: bool = False
    context: str = ""
    speaker: Optional[str] = None

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        return _priority(value)


class MeetingDecision(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    decision: str = Field(min_length=1)
    context: str = ""
    participants: List[str] = []
    speaker: Optional[str] = None
    timestamp: Optional[str] = None

    @field_validator("participants", mode="before")
    @classmethod
    def normalize_participants(cls, value):
        return coerce_str_list(value)


class ParticipantSummary(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: str
    speaking_time: Number = 0
    contributions: List[str] = []
    sentiment: str = "neutral"
    role: Optional[str] = None
    action_items_assigned: int = 0

    @field_validator("speaking_time", mode="before")
    @classmethod
    def normalize_time(cls, value):
        return coerce_number(value, 0)

    @field_validator("contributions", mode="before")
    @classmethod
    def normalize_contributions(cls, value):
        return coerce_str_list(value)

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_sentiment(cls, value):
        return coerce_tone(value)


class SentimentPoint(CamelModel):
    timestamp: str = ""
    sentiment: float = 0.0

    @field_validator("timestamp", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return "" if value is None else str(value)

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_score(cls, value):
        return coerce_number(value, 0)


class MeetingSentiment(CamelModel):
    overall: str = "neutral"
    confidence: float = 0.0
    trends: List[SentimentPoint] = []

    @field_validator("overall", mode="before")
    @classmethod
    def normalize_overall(cls, value):
        return coerce_tone(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, value):
        return max(0.0, min(1.0, float(coerce_number(value, 0))))

    @field_validator("trends", mode="before")
    @classmethod
    def normalize_trends(cls, value):
        return coerce_record_list(value)


class MeetingAnalysis(CamelModel):
    model_config = ConfigDict(extra="allow")

    summary: str = ""
    key_topics: List[str] = []
    action_items: List[MeetingActionItem] = []
    decisions: List[MeetingDecision] = []
    participant_analysis: List[ParticipantSummary] = []
    sentiment: MeetingSentiment = Field(default_factory=MeetingSentiment)

    @field_validator("key_topics", mode="before")
    @classmethod
    def normalize_topics(cls, value):
        return coerce_str_list(value)

    @field_validator("action_items", "decisions", "participant_analysis", mode="before")
    @classmethod
    def normalize_records(cls, value):
        return coerce_record_list(value)

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_sentiment(cls, value):
        return value if isinstance(value, dict) else {}


# ---------------------------------------------------------------------------
# ai-voice-separator
# ---------------------------------------------------------------------------

class VoiceParticipant(CamelModel):
    id: str
    name: str
    role: Optional[str] = None
    voice_profile: Optional[str] = None


class VoiceSeparationRequest(CamelModel):
    audio_data: Optional[str] = None
    transcript: Optional[str] = None
    participants: List[VoiceParticipant] = []
    analysis_type: Literal["transcription", "separation", "analysis", "meeting_notes"] = "analysis"
    language: str = "en"
    context: Optional[str] = None
    mime_type: str = "audio/webm"

    @model_validator(mode="after")
    def require_source(self):
        if not (self.audio_data or (self.transcript and self.transcript.strip())):
            raise ValueError("audioData or transcript is required")
        return self


class VoiceInsights(CamelModel):
    summary: str = ""
    key_decisions: List[str] = []
    follow_up_items: List[str] = []
    topics_discussed: List[str] = []

    @field_validator("key_decisions", "follow_up_items", "topics_discussed", mode="before")
    @classmethod
    def normalize_lists(cls, value):
        return coerce_str_list(value)
