import json

import pytest

from conftest import SAMPLE_WORKOUT
from schemas import WorkoutGenerationRequest, WorkoutPlan
from workout_pipeline.metadata import (calculate_calories, derive_metadata, extract_muscle_groups,
                                       generate_tags)


def make_plan(**overrides):
    return WorkoutPlan.model_validate({**SAMPLE_WORKOUT, **overrides})


def make_request(duration=20, difficulty='intermediate', preferences='hiit'):
    return WorkoutGenerationRequest(userId=1, durationMinutes=duration, difficulty=difficulty,
                                    preferences=preferences)


@pytest.mark.parametrize('difficulty, calories', [
    ('beginner', 150),
    ('intermediate', 240),
    ('advanced', 330),
    ('ADVANCED', 330),
    ('extreme', 240),
    ('', 240),
])
def test_calorie_rates(difficulty, calories):
    assert calculate_calories(30, difficulty) == calories


def test_calories_grow_with_duration_and_difficulty():
    for difficulty in ('beginner', 'intermediate', 'advanced'):
        estimates = [calculate_calories(minutes, difficulty) for minutes in range(1, 121)]
        assert estimates == sorted(estimates)

    for minutes in (1, 10, 45, 90):
        by_level = [calculate_calories(minutes, level) for level in ('beginner', 'intermediate', 'advanced')]
        assert by_level == sorted(by_level)


def test_muscle_groups_from_exercise_names():
    # Squat Jumps, Push-ups, Plank
    assert extract_muscle_groups(make_plan()) == ['legs', 'chest', 'core']


def test_muscle_groups_are_case_insensitive_and_deduplicated():
    plan = make_plan(main=[
        {'name': 'BICEP CURL', 'sets': 3, 'reps': 10},
        {'name': 'Bent-over Row', 'sets': 3, 'reps': 10},
        {'name': 'Hammer Curl', 'sets': 3, 'reps': 10},
    ], warmup=[], cooldown=[])

    assert extract_muscle_groups(plan) == ['arms']


def test_no_keywords_means_no_muscle_groups():
    plan = WorkoutPlan.model_validate({
        'name': 'Easy walk', 'description': 'Walking outdoors',
        'warmup': [], 'main': [{'name': 'Walk', 'durationSeconds': 600}], 'cooldown': []
    })
    assert extract_muscle_groups(plan) == []


def test_empty_main_does_not_break_enrichment():
    plan = make_plan(main=[])
    metadata = derive_metadata(plan, make_request())
    assert metadata.estimatedCalories == 160


def test_tags_start_with_difficulty():
    assert generate_tags('cardio, strength', 'Beginner') == ['beginner', 'cardio', 'strength']
    assert generate_tags('general fitness', 'advanced') == ['advanced', 'general fitness']
    assert generate_tags('', 'intermediate') == ['intermediate']


def test_derivation_is_deterministic():
    plan, request = make_plan(), make_request(duration=25, difficulty='advanced', preferences='cardio, hiit')

    first = derive_metadata(plan, request)
    second = derive_metadata(WorkoutPlan.model_validate(json.loads(plan.model_dump_json())), request)

    assert first == second
    assert first.estimatedCalories == 275
    assert first.tags == ['advanced', 'cardio', 'hiit']
