"""Audit prompt templates.

1. SCORING_SYSTEM: system instruction for the checklist evaluation.
2. SCORING_PROMPT: per-video evaluation request.
   Variables: {description}, {transcript}, {duration}.
3. TRANSCRIBE_PROMPT: verbatim speech transcription instruction.
"""

from __future__ import annotations

SCORING_SYSTEM = """\
You are a short-form video strategist who audits TikTok and YouTube Shorts \
content against proven best practices. Judge only from the evidence given. \
When the evidence does not show a criterion, answer false."""

SCORING_PROMPT = """\
Evaluate this short-form video.

Caption / description:
\"\"\"{description}\"\"\"

Spoken transcript:
\"\"\"{transcript}\"\"\"

Duration: {duration}

Decide each criterion:
- hookInFirst3Sec: the opening lines grab attention within the first three seconds.
- clearCTA: the viewer is told exactly what to do next (follow, comment, link in bio, buy).
- length10to25Sec: the video runs between 10 and 25 seconds.
- hasVoiceOver: someone speaks over the footage.
- hasSubtitles: the creator mentions or clearly uses on-screen captions.

Then give 2-5 concrete recommendations, most impactful first, each a single \
sentence the creator can act on."""

NO_TRANSCRIPT = "(no transcript available: treat audio as unknown, not as silent)"
UNKNOWN_DURATION = "unknown (judge from the content if possible)"

TRANSCRIBE_PROMPT = """\
Transcribe every spoken word in this media verbatim, in the original language. \
Return only the transcript text with no timestamps, speaker labels or commentary. \
If nobody speaks, return an empty response."""
