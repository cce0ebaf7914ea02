"""Extract structured signals from free-text relationship notes.

Everything here is pure and deterministic: the same notes always produce the
same ``NotesAnalysis`` and nothing raises, so the scoring engine and prompt
builder can call it on every cycle.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence

from dealpulse.core.models import NotesAnalysis, Sentiment

MAX_QUESTIONS = 10
MAX_REQUIREMENTS = 8
MAX_DECISION_POINTS = 8
MAX_EVENTS = 5
MAX_TOPICS = 8
MAX_URGENCY = 5


def _compile(patterns: Iterable[str]) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


QUESTION_PATTERNS = _compile(
    [
        r"\?\s*$",
        r"\bcan (the|they|we|you|it|this)\b",
        r"\bhow (is|can|will|does|do)\b",
        r"\bis there\b",
        r"\bwill (the|they|we|you|it|this|there)\b",
        r"\bwhat (is|are|if|about|would)\b",
    ]
)

REQUIREMENT_PATTERNS = _compile(
    [
        r"\bneed(s|ed)?\b",
        r"\brequire(s|d)?\b",
        r"\bmust\s+have\b",
        r"\bshould\s+have\b",
        r"\bimportant\b",
        r"\bensure\b",
        r"\bfunctionality\b",
    ]
)

DECISION_PATTERNS = _compile(
    [
        r"\bdecid(e|ed|ing)\b",
        r"\bdecision\b",
        r"\bconfirm(ed|ation)?\b",
        r"\bapproval\b",
        r"\bchoos(e|ing)\b",
        r"\bselect(ed|ion)?\b",
        r"\bdetermine\b",
        r"\bevaluat(e|ing|ion)\b",
        r"\bassess(ing|ment)?\b",
        r"\breview(ing)?\b",
        r"\bwaiting for\b",
        r"\bpending\b",
        r"\bneed to\b",
    ]
)

EVENT_PATTERNS = _compile(
    [
        r"\bmeeting\b",
        r"\bcall\b",
        r"\bdemo\b",
        r"\bpresentation\b",
        r"\bworkshop\b",
        r"\bsession\b",
        r"\bfollow[\s-]?up\b",
        r"\bscheduled\b",
        r"\breschedul",
    ]
)

TIME_PATTERNS = _compile(
    [
        r"\btomorrow\b",
        r"\bnext (week|month|quarter)\b",
        r"\bupcoming\b",
        r"\bscheduled\b",
        r"\bplanned\b",
        r"\bfuture\b",
        r"\bsoon\b",
        r"\blater\b",
        r"\bpending\b",
    ]
)

DATE_PATTERN = re.compile(r"\b\d{1,2}/\d{1,2}\b|\b\d{1,2}-\d{1,2}\b")

POSITIVE_WORDS = _compile(
    [
        r"\bprogress",
        r"\bmoving forward\b",
        r"\bnext steps?\b",
        r"\bproceed",
        r"\bapprov(e|ed|al)\b",
        r"\binterest(ed)?\b",
        r"\bexcited\b",
        r"\bpositive\b",
    ]
)

NEGATIVE_WORDS = _compile(
    [
        r"\bdelay",
        r"\bpostpone",
        r"\bwait(ing)?\b",
        r"\bhold\b",
        r"\bpause",
        r"\breconsider",
        r"\brethink",
        r"\bconcern",
    ]
)

TOPIC_KEYWORDS: Sequence[str] = (
    "pricing",
    "integration",
    "security",
    "compliance",
    "onboarding",
    "implementation",
    "reporting",
    "support",
    "training",
    "migration",
)

URGENCY_PATTERNS = _compile(
    [
        r"\burgent(ly)?\b",
        r"\basap\b",
        r"\bimmediately\b",
        r"\bdeadline\b",
        r"\bcritical\b",
        r"\bend of (the )?(month|quarter|year)\b",
        r"\bby (friday|eow|eod|end of week)\b",
    ]
)

_BULLET = re.compile(r"^\s*(?:[•\-\*]|\d+[.)])\s+")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def split_segments(text: Optional[str]) -> List[str]:
    """Split notes into paragraphs, lines and sentences, dropping bullets."""
    if not text:
        return []

    segments: List[str] = []
    for paragraph in re.split(r"\n\s*\n", text):
        for line in paragraph.splitlines():
            line = _BULLET.sub("", line).strip()
            if not line:
                continue
            for sentence in _SENTENCE_BREAK.split(line):
                sentence = sentence.strip()
                if sentence:
                    segments.append(sentence)
    return segments


def _matches(segment: str, patterns: Sequence[Pattern[str]]) -> bool:
    return any(p.search(segment) for p in patterns)


def _count_hits(text: str, patterns: Sequence[Pattern[str]]) -> int:
    return sum(len(p.findall(text)) for p in patterns)


def _bounded_unique(items: Iterable[str], limit: int) -> List[str]:
    seen = set()
    result = []
    for item in items:
        key = item.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
        if len(result) >= limit:
            break
    return result


def _is_upcoming_event(segment: str) -> bool:
    if not _matches(segment, EVENT_PATTERNS):
        return False
    return bool(DATE_PATTERN.search(segment)) or _matches(segment, TIME_PATTERNS)


def classify_sentiment(text: str) -> Sentiment:
    """Majority vote of positive vs negative keyword hits; ties are neutral."""
    positive = _count_hits(text, POSITIVE_WORDS)
    negative = _count_hits(text, NEGATIVE_WORDS)
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def analyze_notes(text: Optional[str]) -> NotesAnalysis:
    """Build a bounded ``NotesAnalysis`` from free-text notes."""
    segments = split_segments(text)
    if not segments:
        return NotesAnalysis()

    questions = [s for s in segments if _matches(s, QUESTION_PATTERNS)]
    question_set = set(questions)
    requirements = [
        s for s in segments if s not in question_set and _matches(s, REQUIREMENT_PATTERNS)
    ]
    decisions = [s for s in segments if _matches(s, DECISION_PATTERNS)]
    events = [s for s in segments if _is_upcoming_event(s)]

    lowered = text.lower()
    topics = [kw for kw in TOPIC_KEYWORDS if re.search(rf"\b{kw}\b", lowered)]
    urgency = []
    for pattern in URGENCY_PATTERNS:
        urgency.extend(m.group(0).lower() for m in pattern.finditer(text))

    return NotesAnalysis(
        questions=_bounded_unique(questions, MAX_QUESTIONS),
        requirements=_bounded_unique(requirements, MAX_REQUIREMENTS),
        decision_points=_bounded_unique(decisions, MAX_DECISION_POINTS),
        upcoming_events=_bounded_unique(events, MAX_EVENTS),
        sentiment=classify_sentiment(text),
        key_topics=_bounded_unique(topics, MAX_TOPICS),
        urgency_indicators=_bounded_unique(urgency, MAX_URGENCY),
    )


# Entities mentioned in notes

_CAMEL_CASE = re.compile(r"\b[A-Z][a-z]+(?:[A-Z][a-z0-9]+)+\b")
_ALL_CAPS = re.compile(r"\b[A-Z]{2,}[0-9]*\b")
_SYSTEM_STOPLIST = {
    "API", "ASAP", "CEO", "CFO", "CIO", "COO", "CTO", "EOD", "EOW", "FAQ", "FYI",
    "HR", "IT", "NDA", "PM", "AM", "Q1", "Q2", "Q3", "Q4", "ROI", "RFP", "SOW",
    "TBD", "US", "USA", "VP",
}
_METRIC_PATTERNS = _compile(
    [
        r"\$\s?\d[\d,]*(?:\.\d+)?\s?(?:[KMB]\b|million\b|billion\b|thousand\b)?",
        r"\b\d+(?:\.\d+)?\s?%",
        r"\b\d+(?:\.\d+)?\s?(?:K|M|B)\b",
        r"\b\d+\s?(?:days?|weeks?|months?|quarters?|years?)\b",
    ]
)
_KEY_PERSON = re.compile(
    r"\b([A-Z][a-z]+ [A-Z][a-z]+)\s*(?:,|\(|-|is|as)?\s*(?:the|our|their)?\s*"
    r"(CEO|CFO|CTO|COO|CIO|VP|Director|Manager|Head|President|Founder|Lead)\b"
)


def extract_intelligence_info(text: Optional[str]) -> Dict[str, List[str]]:
    """Pull system names, metrics and key people out of notes for prompting."""
    if not text:
        return {"system_names": [], "metrics": [], "key_people": []}

    systems = [m.group(0) for m in _CAMEL_CASE.finditer(text)]
    systems.extend(
        m.group(0) for m in _ALL_CAPS.finditer(text) if m.group(0) not in _SYSTEM_STOPLIST
    )

    metrics: List[str] = []
    for pattern in _METRIC_PATTERNS:
        metrics.extend(m.group(0).strip() for m in pattern.finditer(text))

    people = [f"{m.group(1)} ({m.group(2)})" for m in _KEY_PERSON.finditer(text)]

    return {
        "system_names": _bounded_unique(systems, 10),
        "metrics": _bounded_unique(metrics, 10),
        "key_people": _bounded_unique(people, 5),
    }
