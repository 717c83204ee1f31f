"""
galley/features/meetings/service.py

Meeting notes from a recording or a transcript.

ai-meeting-transcription
    transcript source, in order: the text the caller sent, the recording
    transcribed by the speech model, or a simulated staff meeting written by
    the model. The model then extracts summary, action items, decisions and
    participant notes.

ai-voice-separator
    splits "Speaker: text" lines into timed segments (150 words a minute,
    a one second pause between turns) and computes speaker statistics,
    emotion and action items locally. For analysis and meeting_notes the
    model adds decisions, follow-ups and a summary.
"""

import json
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.features.transcription.service import decode_audio, transcribe_audio
from galley.models.meetings import (
    MeetingAnalysis,
    MeetingTranscriptionRequest,
    VoiceInsights,
    VoiceParticipant,
    VoiceSeparationRequest,
)

WORDS_PER_MINUTE = 150
TURN_PAUSE_SECONDS = 1.0
TRANSCRIBED_CONFIDENCE = 0.9

_SPEAKER_LINE = re.compile(r"^\s*(?:\[\d{1,2}:\d{2}(?::\d{2})?\]\s*)?\**\s*([^:*\[\]]{1,60}?)\s*\**\s*:\s*(.+)$")

POSITIVE_WORDS = ("great", "excellent", "good", "perfect", "awesome", "wonderful", "thanks")
NEGATIVE_WORDS = ("problem", "issue", "concern", "worried", "difficult", "bad", "broken")
URGENT_WORDS = ("immediately", "urgent", "asap", "critical", "emergency", "today")
IMPORTANT_WORDS = ("important", "priority", "must", "should", "need")
ACTION_MARKERS = ("will", "should", "need to", "schedule", "i'll", "follow up")
STOP_WORDS = frozenset(
    "the a an and or but in on at to for of with by this that have from they them their will would "
    "should could about there been were what when your just also".split()
)
RESTAURANT_TOPICS = ("inventory", "menu", "staff", "training", "customer", "food", "service", "schedule", "supplier", "cooler")


# ---------------------------------------------------------------------------
# ai-meeting-transcription
# ---------------------------------------------------------------------------

def build_simulated_meeting_prompt(req: MeetingTranscriptionRequest) -> str:
    return f"""You are a professional meeting transcriber. Write a realistic transcript of a restaurant team meeting with clear speaker separation.

Meeting Details:
- Title: {req.meeting_title}
- Participants: {", ".join(req.participants)}
- Duration: {req.duration // 60} minutes
- Type: Restaurant operations meeting

Cover staffing and coverage, inventory and ordering, food safety, cost control, menu changes,
equipment maintenance and training. Include specific tasks with owners and due dates, and
decisions with clear outcomes.

Format Requirements:
- Timestamps every 30-60 seconds: [MM:SS]
- One turn per line: "**Speaker Name**: statement"
"""


SIMULATED_MEETING_TASK = AITask(
    name="meetings.simulate",
    build_prompt=build_simulated_meeting_prompt,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=2048),
)


def build_meeting_analysis_prompt(transcript: str) -> str:
    return f"""Analyze this meeting transcript and respond with JSON only.

{transcript}

Use this structure:
{{
  "summary": "2-3 sentence summary with key outcomes",
  "keyTopics": ["topic"],
  "actionItems": [
    {{"task": "specific task", "assignee": "name or null", "dueDate": "date or null",
      "priority": "low|medium|high", "context": "surrounding context", "speaker": "who raised it"}}
  ],
  "decisions": [
    {{"decision": "what was decided", "context": "rationale", "participants": ["names"], "speaker": "who announced it"}}
  ],
  "participantAnalysis": [
    {{"name": "participant", "speakingTime": 0, "contributions": ["point"],
      "sentiment": "positive|neutral|negative", "role": "inferred role", "actionItemsAssigned": 0}}
  ],
  "sentiment": {{"overall": "positive|neutral|negative", "confidence": 0.0, "trends": [{{"timestamp": "MM:SS", "sentiment": 0.0}}]}}
}}

Extract every action item, even small ones. Look for "I'll", "you should", "we need to",
"by [date]" and "follow up on". Set priority from deadline urgency and impact words."""


def fallback_meeting_analysis(transcript: str) -> dict:
    return {
        "summary": "Meeting analysis could not be completed; review the transcript manually",
        "keyTopics": ["General Discussion"],
        "actionItems": [
            {"task": "Review meeting transcript manually", "priority": "medium", "context": "Automatic analysis failed"}
        ],
        "decisions": [],
        "participantAnalysis": [],
        "sentiment": {"overall": "neutral", "confidence": 0, "trends": []},
    }


MEETING_ANALYSIS_TASK = AITask(
    name="meetings.analyze",
    build_prompt=build_meeting_analysis_prompt,
    schema=MeetingAnalysis,
    fallback=fallback_meeting_analysis,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.95, max_output_tokens=1024),
)


async def _meeting_transcript(req: MeetingTranscriptionRequest, gemini, openai, user_id) -> tuple:
    if req.transcript and req.transcript.strip():
        return req.transcript.strip(), "provided"
    if req.audio_data:
        audio = decode_audio(req.audio_data)
        result = await transcribe_audio(audio, openai, mime_type=req.mime_type, language=req.language, user_id=user_id)
        return result["text"], "audio"
    outcome = await run_task(SIMULATED_MEETING_TASK, req, gemini, user_id=user_id)
    return outcome.data, "generated"


def number_records(analysis: dict, now: Optional[datetime] = None) -> dict:
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    for index, item in enumerate(analysis["actionItems"], start=1):
        item["id"] = f"action_{index}"
        item["completed"] = False
    for index, decision in enumerate(analysis["decisions"], start=1):
        decision["id"] = f"decision_{index}"
        decision["timestamp"] = decision.get("timestamp") or stamp
    return analysis


async def transcribe_meeting(req: MeetingTranscriptionRequest, gemini, openai, *, user_id=None) -> dict:
    transcript, source = await _meeting_transcript(req, gemini, openai, user_id)
    outcome = await run_task(MEETING_ANALYSIS_TASK, transcript, gemini, user_id=user_id)
    analysis = number_records(outcome.data)
    return outcome.envelope(
        transcript=transcript,
        source=source,
        actionItems=analysis["actionItems"],
        meetingSummary=analysis["summary"],
        keyTopics=analysis["keyTopics"],
        decisions=analysis["decisions"],
        participants=analysis["participantAnalysis"],
        sentiment=analysis["sentiment"],
    )


# ---------------------------------------------------------------------------
# ai-voice-separator
# ---------------------------------------------------------------------------

def detect_emotion(text: str) -> str:
    lower = text.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lower)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lower)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def extract_keywords(text: str, limit: int = 5) -> List[str]:
    words = (word.strip(".,!?;:\"'()") for word in text.lower().split())
    keywords = []
    for word in words:
        if len(word) > 3 and word not in STOP_WORDS and word not in keywords:
            keywords.append(word)
    return keywords[:limit]


def action_priority(text: str) -> str:
    lower = text.lower()
    if any(word in lower for word in URGENT_WORDS):
        return "high"
    if any(word in lower for word in IMPORTANT_WORDS):
        return "medium"
    return "low"


def _match_participant(name: str, participants: List[VoiceParticipant]) -> Optional[VoiceParticipant]:
    lower = name.lower()
    for participant in participants:
        known = participant.name.lower()
        if known in lower or lower in known:
            return participant
    return None


def split_speakers(text: str, participants: List[VoiceParticipant], confidence: float) -> List[dict]:
    """Timed segments from "Speaker: text" lines; other lines are skipped."""
    segments = []
    clock = 0.0
    anonymous: Dict[str, str] = {}
    for line in text.splitlines():
        match = _SPEAKER_LINE.match(line)
        if not match:
            continue
        speaker, spoken = match.group(1).strip(), match.group(2).strip()
        duration = len(spoken.split()) / WORDS_PER_MINUTE * 60
        participant = _match_participant(speaker, participants)
        if participant:
            speaker_id = participant.id
        else:
            speaker_id = anonymous.setdefault(speaker.lower(), f"speaker_{len(anonymous) + 1}")
        segments.append(
            {
                "startTime": round(clock, 2),
                "endTime": round(clock + duration, 2),
                "speakerId": speaker_id,
                "speakerName": participant.name if participant else speaker,
                "text": spoken,
                "confidence": confidence,
                "emotion": detect_emotion(spoken),
                "keywords": extract_keywords(spoken),
            }
        )
        clock += duration + TURN_PAUSE_SECONDS
    return segments


def _spoken_time(segment: dict) -> float:
    return segment["endTime"] - segment["startTime"]


def analyze_speakers(segments: List[dict]) -> List[dict]:
    by_speaker: Dict[str, List[dict]] = {}
    for segment in segments:
        by_speaker.setdefault(segment["speakerId"], []).append(segment)
    total_time = sum(_spoken_time(segment) for segment in segments) or 1.0

    analysis = []
    for speaker_id, turns in by_speaker.items():
        spoken = sum(_spoken_time(turn) for turn in turns)
        tones = Counter(turn["emotion"] for turn in turns)
        text = " ".join(turn["text"] for turn in turns).lower()
        analysis.append(
            {
                "speakerId": speaker_id,
                "speakerName": turns[0]["speakerName"],
                "totalSpeakingTime": round(spoken, 2),
                "wordCount": sum(len(turn["text"].split()) for turn in turns),
                "turns": len(turns),
                "averageConfidence": round(sum(turn["confidence"] for turn in turns) / len(turns), 3),
                "emotionalTone": {
                    tone: round(tones.get(tone, 0) / len(turns) * 100, 1) for tone in ("positive", "negative", "neutral")
                },
                "keyTopics": [topic for topic in RESTAURANT_TOPICS if topic in text][:3],
                "speakingPattern": {"dominanceScore": round(spoken / total_time * 100, 1)},
            }
        )
    return analysis


def find_action_items(segments: List[dict]) -> List[dict]:
    items = []
    for segment in segments:
        lower = segment["text"].lower()
        if not any(marker in lower for marker in ACTION_MARKERS):
            continue
        items.append(
            {
                "id": f"action_{len(items) + 1}",
                "task": segment["text"],
                "assignee": segment["speakerName"],
                "priority": action_priority(segment["text"]),
                "context": "Extracted from meeting conversation",
                "speaker": segment["speakerName"],
                "confidence": segment["confidence"],
            }
        )
    return items


_TONE_SCORE = {"positive": 75, "neutral": 50, "negative": 25}


def meeting_insights(segments: List[dict], actions: List[dict]) -> dict:
    speakers = {segment["speakerId"] for segment in segments}
    average_length = sum(len(s["text"]) for s in segments) / len(segments) if segments else 0
    topics = Counter(topic for s in segments for topic in RESTAURANT_TOPICS if topic in s["text"].lower())
    return {
        "duration": segments[-1]["endTime"] if segments else 0,
        "participantCount": len(speakers),
        "engagementScore": round(min(100.0, len(speakers) * 20 + average_length * 0.1), 1),
        "topicsDiscussed": [topic for topic, _ in topics.most_common(5)],
        "sentimentProgression": [
            {"timepoint": segment["startTime"], "sentiment": _TONE_SCORE[segment["emotion"]]}
            for segment in segments[::2]
        ],
        "keyDecisions": [],
        "followUpItems": [item["task"] for item in actions if item["priority"] != "low"][:5],
    }


def build_voice_prompt(data: dict) -> str:
    req: VoiceSeparationRequest = data["request"]
    return f"""As an expert meeting analyst, review this separated meeting transcript.

SEGMENTS:
{json.dumps([{"speaker": s["speakerName"], "text": s["text"]} for s in data["segments"]], indent=2)}

KNOWN PARTICIPANTS:
{json.dumps([p.model_dump(by_alias=True) for p in req.participants], indent=2)}

ANALYSIS TYPE: {req.analysis_type}
MEETING CONTEXT: {req.context or "Restaurant team meeting"}

Respond with JSON only:
{{"summary": "meeting summary with key takeaways", "keyDecisions": ["decision"],
  "followUpItems": ["follow-up"], "topicsDiscussed": ["topic"]}}"""


def fallback_voice_insights(data: dict) -> dict:
    insights = data["insights"]
    topics = insights["topicsDiscussed"]
    return {
        "summary": (
            f"{insights['participantCount']} participants spoke for {round(insights['duration'] / 60, 1)} minutes"
            + (f" about {', '.join(topics)}." if topics else ".")
        ),
        "keyDecisions": [],
        "followUpItems": insights["followUpItems"],
        "topicsDiscussed": topics,
    }


VOICE_INSIGHTS_TASK = AITask(
    name="meetings.voice_insights",
    build_prompt=build_voice_prompt,
    schema=VoiceInsights,
    fallback=fallback_voice_insights,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.8, max_output_tokens=4096, response_mime_type="application/json"),
    model_tier="pro",
)


async def separate_voices(req: VoiceSeparationRequest, gemini, openai, *, user_id=None) -> dict:
    if req.audio_data:
        audio = decode_audio(req.audio_data)
        result = await transcribe_audio(audio, openai, mime_type=req.mime_type, language=req.language, user_id=user_id)
        text, confidence = result["text"], TRANSCRIBED_CONFIDENCE
    else:
        text, confidence = req.transcript, 1.0

    segments = split_speakers(text, req.participants, confidence)
    actions = find_action_items(segments)
    insights = meeting_insights(segments, actions)
    result = {
        "transcription": segments,
        "speakerAnalysis": analyze_speakers(segments),
        "confidence": confidence,
    }
    if req.analysis_type in ("transcription", "separation"):
        return {"success": True, "result": result}

    outcome = await run_task(
        VOICE_INSIGHTS_TASK,
        {"request": req, "segments": segments, "insights": insights},
        gemini,
        user_id=user_id,
    )
    ai = outcome.data
    insights.update(
        keyDecisions=ai["keyDecisions"],
        followUpItems=ai["followUpItems"] or insights["followUpItems"],
        topicsDiscussed=ai["topicsDiscussed"] or insights["topicsDiscussed"],
    )
    insights["meetingEffectiveness"] = min(100, 40 + 15 * len(insights["keyDecisions"]) + 10 * len(actions))
    result.update(meetingInsights=insights, actionItems=actions, summary=ai["summary"])
    return outcome.envelope(result=result)
