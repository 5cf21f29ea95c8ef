"""Wire and domain schemas shared by the server, the pipeline and the client.

Field names follow the JSON the mobile app already speaks (camelCase), so the
models can be dumped straight into Flask responses.
"""

import math
import re
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (AliasChoices, BaseModel, ConfigDict, Discriminator, Field, Tag,
                      field_validator, model_validator)

Role = Literal['user', 'assistant', 'system']
Difficulty = Literal['beginner', 'intermediate', 'advanced']
ReplyType = Literal['message', 'workout', 'exerciseForm']
UserId = Optional[Union[int, str]]

DIFFICULTIES = ('beginner', 'intermediate', 'advanced')


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: str = Field(default_factory=utc_now_iso)


# "30 seconds", "1 minute", "45s", 60
_TIME_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(seconds?|secs?|minutes?|mins?|s|m)?\b', re.IGNORECASE)


def to_seconds(value):
    """Normalise a model-supplied time value to whole seconds.

    Text without any number (e.g. the "X seconds" placeholder) becomes None
    rather than failing the whole plan. Non-finite amounts are rejected.
    """
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _whole_seconds(value)
    if isinstance(value, str):
        match = _TIME_PATTERN.search(value)
        if not match:
            return None
        amount = float(match.group(1))
        unit = (match.group(2) or 's').lower()
        if unit.startswith('m'):
            amount *= 60
        return _whole_seconds(amount)
    return value


def _whole_seconds(amount: float) -> int:
    # 1e400 and 400-digit strings both come through as inf
    if not math.isfinite(amount):
        raise ValueError('time value is not a finite number')
    return int(amount)


class TimedSegment(BaseModel):
    model_config = ConfigDict(extra='allow')

    name: str
    durationSeconds: Optional[int] = Field(
        default=None, validation_alias=AliasChoices('durationSeconds', 'duration'))
    instructions: Optional[str] = ''

    @field_validator('durationSeconds', mode='before')
    @classmethod
    def normalise_seconds(cls, value):
        return to_seconds(value)


class LoadedSegment(BaseModel):
    model_config = ConfigDict(extra='allow')

    name: str
    sets: int
    reps: Union[int, str]
    restSeconds: Optional[int] = Field(
        default=None, validation_alias=AliasChoices('restSeconds', 'rest'))
    instructions: Optional[str] = ''

    @field_validator('restSeconds', mode='before')
    @classmethod
    def normalise_seconds(cls, value):
        return to_seconds(value)


def _segment_kind(value):
    if isinstance(value, dict):
        return 'loaded' if 'sets' in value else 'timed'
    if isinstance(value, LoadedSegment):
        return 'loaded'
    if isinstance(value, TimedSegment):
        return 'timed'
    return None


Segment = Annotated[
    Union[Annotated[LoadedSegment, Tag('loaded')], Annotated[TimedSegment, Tag('timed')]],
    Discriminator(_segment_kind),
]


class WorkoutPlan(BaseModel):
    name: str
    description: str
    warmup: List[Segment]
    main: List[Segment]
    cooldown: List[Segment]

    def sections(self) -> Dict[str, List[Dict[str, Any]]]:
        dumped = self.model_dump(exclude_none=True)
        return {key: dumped[key] for key in ('warmup', 'main', 'cooldown')}


def _normalise_difficulty(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class WorkoutGenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    userId: UserId = None
    durationMinutes: int = Field(gt=0)
    difficulty: Difficulty = 'intermediate'
    preferences: str = ''

    normalise_difficulty = field_validator('difficulty', mode='before')(_normalise_difficulty)


class WorkoutMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    estimatedCalories: int
    targetMuscleGroups: List[str]
    tags: List[str]


class WorkoutAnalytics(BaseModel):
    timesCompleted: int = Field(default=0, ge=0)
    lastCompleted: Optional[str] = None


class PersistedWorkout(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: int
    userId: UserId = None
    name: str
    description: str = ''
    duration: Optional[int] = None
    difficulty: Optional[str] = None
    warmup: List[Dict[str, Any]] = []
    main: List[Dict[str, Any]] = []
    cooldown: List[Dict[str, Any]] = []
    estimatedCalories: int = 0
    targetMuscleGroups: List[str] = []
    tags: List[str] = []
    autoGenerated: bool = False
    createdBy: str = 'user'
    generatedAt: Optional[str] = None
    createdAt: Optional[str] = None
    analytics: WorkoutAnalytics = Field(default_factory=WorkoutAnalytics)


class ExerciseForm(BaseModel):
    exercise: str
    guidance: str


class TrainerReply(BaseModel):
    """Reply to a chat message, tagged by what the client should do with it"""

    type: ReplyType = 'message'
    response: str
    message: ConversationMessage
    conversationId: Optional[int] = None
    workoutGenerated: bool = False
    workoutId: Optional[int] = None
    workout: Optional[Dict[str, Any]] = None
    exerciseForm: Optional[ExerciseForm] = None

    @model_validator(mode='after')
    def check_variant(self):
        if self.type == 'workout' and self.workoutId is None:
            raise ValueError('workout replies must carry a workoutId')
        if self.type == 'exerciseForm' and self.exerciseForm is None:
            raise ValueError('exerciseForm replies must carry exerciseForm')
        if self.type == 'message' and (self.workout is not None or self.exerciseForm is not None):
            raise ValueError('plain message replies cannot carry a payload')
        return self


# Request bodies accepted by the HTTP layer

class MessageRequest(BaseModel):
    message: str
    userId: UserId = None
    conversationId: Optional[int] = None

    @field_validator('message')
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('message must not be empty')
        return value.strip()


class GenerateWorkoutBody(BaseModel):
    userId: UserId = None
    preferences: Optional[str] = ''
    duration: int = Field(default=30, gt=0)
    difficulty: Difficulty = 'intermediate'

    normalise_difficulty = field_validator('difficulty', mode='before')(_normalise_difficulty)


class CompleteWorkoutBody(BaseModel):
    duration: Optional[int] = Field(default=None, ge=0)
    completedAt: Optional[str] = None


class ConversationHistory(BaseModel):
    messages: List[ConversationMessage] = []
    conversationId: Optional[int] = None
