import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

DEFAULT_DURATION = 30
DEFAULT_DIFFICULTY = 'intermediate'
DEFAULT_PREFERENCES = 'general fitness'

# A workout request needs one verb and one domain noun
REQUEST_VERB_RULES: List[Pattern] = [
    re.compile(r'\bcreate', re.IGNORECASE),
    re.compile(r'\bgenerate', re.IGNORECASE),
    re.compile(r'\bmake\b', re.IGNORECASE),
    re.compile(r'\bdesign', re.IGNORECASE),
    re.compile(r'\bbuild', re.IGNORECASE),
    re.compile(r'\bsuggest', re.IGNORECASE),
    re.compile(r'\bgive me\b', re.IGNORECASE),
]

DOMAIN_NOUN_RULES: List[Pattern] = [
    re.compile(r'workout', re.IGNORECASE),
    re.compile(r'routine', re.IGNORECASE),
    re.compile(r'exercise', re.IGNORECASE),
    re.compile(r'training', re.IGNORECASE),
]

# "20 minutes", "10 min", "20-minute"
DURATION_PATTERN = re.compile(r'(\d+)\s*-?\s*min', re.IGNORECASE)

# Ordered: the first matching rule decides
DIFFICULTY_RULES: List[Tuple[Pattern, str]] = [
    (re.compile(r'beginner|easy|simple', re.IGNORECASE), 'beginner'),
    (re.compile(r'advanced|hard|challenging', re.IGNORECASE), 'advanced'),
]

# Independent checks, joined in this order
PREFERENCE_RULES: List[Tuple[Pattern, str]] = [
    (re.compile(r'cardio', re.IGNORECASE), 'cardio'),
    (re.compile(r'strength', re.IGNORECASE), 'strength'),
    (re.compile(r'hiit', re.IGNORECASE), 'hiit'),
    (re.compile(r'yoga|flexibility', re.IGNORECASE), 'flexibility'),
]


@dataclass(frozen=True)
class IntentResult:
    is_workout_request: bool


@dataclass(frozen=True)
class ExtractedParameters:
    duration_minutes: int
    difficulty: str
    preferences: str


def _text(message: Optional[str]) -> str:
    return message if isinstance(message, str) else ''


def classify_message(message: Optional[str]) -> IntentResult:
    """Decide whether a chat message asks for a new workout. Never raises."""
    text = _text(message)
    has_verb = any(rule.search(text) for rule in REQUEST_VERB_RULES)
    has_noun = any(rule.search(text) for rule in DOMAIN_NOUN_RULES)
    return IntentResult(is_workout_request=has_verb and has_noun)


def extract_duration(message: Optional[str]) -> int:
    match = DURATION_PATTERN.search(_text(message))
    if not match:
        return DEFAULT_DURATION
    minutes = int(match.group(1))
    return minutes if minutes > 0 else DEFAULT_DURATION


def extract_difficulty(message: Optional[str]) -> str:
    text = _text(message)
    for pattern, difficulty in DIFFICULTY_RULES:
        if pattern.search(text):
            return difficulty
    return DEFAULT_DIFFICULTY


def extract_preferences(message: Optional[str]) -> str:
    text = _text(message)
    preferences = [value for pattern, value in PREFERENCE_RULES if pattern.search(text)]
    return ', '.join(preferences) or DEFAULT_PREFERENCES


def extract_parameters(message: Optional[str]) -> ExtractedParameters:
    """Pull duration, difficulty and style hints out of free text"""
    return ExtractedParameters(
        duration_minutes=extract_duration(message),
        difficulty=extract_difficulty(message),
        preferences=extract_preferences(message)
    )
