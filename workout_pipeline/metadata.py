import json
from typing import List, Tuple

from schemas import WorkoutGenerationRequest, WorkoutMetadata, WorkoutPlan

CALORIE_RATES = {'beginner': 5, 'intermediate': 8, 'advanced': 11}
DEFAULT_CALORIE_RATE = 8

# (keywords, muscle group), checked against the whole serialized plan
MUSCLE_GROUP_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (('squat', 'lunge'), 'legs'),
    (('push', 'press'), 'chest'),
    (('plank', 'crunch'), 'core'),
    (('curl', 'row'), 'arms'),
]


def calculate_calories(duration: int, difficulty: str) -> int:
    rate = CALORIE_RATES.get((difficulty or '').lower(), DEFAULT_CALORIE_RATE)
    return duration * rate


def extract_muscle_groups(plan: WorkoutPlan) -> List[str]:
    exercise_text = json.dumps(plan.model_dump(), sort_keys=True).lower()

    muscles = []
    for keywords, group in MUSCLE_GROUP_RULES:
        if group not in muscles and any(keyword in exercise_text for keyword in keywords):
            muscles.append(group)
    return muscles


def generate_tags(preferences: str, difficulty: str) -> List[str]:
    tags = [difficulty.lower()]
    if preferences:
        tags.extend(preferences.split(', '))
    return tags


def derive_metadata(plan: WorkoutPlan, request: WorkoutGenerationRequest) -> WorkoutMetadata:
    """Compute calories, muscle groups and tags for a validated plan"""
    return WorkoutMetadata(
        estimatedCalories=calculate_calories(request.durationMinutes, request.difficulty),
        targetMuscleGroups=extract_muscle_groups(plan),
        tags=generate_tags(request.preferences, request.difficulty)
    )
