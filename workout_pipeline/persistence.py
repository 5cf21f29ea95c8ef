from datetime import datetime, timezone
from typing import Any, Dict

from errors import PersistenceFailure
from models import WorkoutRepository
from schemas import WorkoutGenerationRequest, WorkoutMetadata, WorkoutPlan

AI_CREATOR = 'ai-agent'


def build_enriched_record(user_id, plan: WorkoutPlan, request: WorkoutGenerationRequest,
                          metadata: WorkoutMetadata, generated_at: str = None) -> Dict[str, Any]:
    """Flatten plan, request and metadata into the storage record"""
    return {
        'userId': user_id,
        'name': plan.name,
        'description': plan.description,
        'duration': request.durationMinutes,
        'difficulty': request.difficulty,
        **plan.sections(),
        'estimatedCalories': metadata.estimatedCalories,
        'targetMuscleGroups': list(metadata.targetMuscleGroups),
        'tags': list(metadata.tags),
        'autoGenerated': True,
        'createdBy': AI_CREATOR,
        'generatedAt': generated_at or datetime.now(timezone.utc).isoformat(),
        'analytics': {'timesCompleted': 0, 'lastCompleted': None}
    }


class WorkoutPersistence:
    def __init__(self, repository: WorkoutRepository):
        self.repository = repository

    def save(self, user_id, plan: WorkoutPlan, request: WorkoutGenerationRequest,
             metadata: WorkoutMetadata) -> Dict[str, Any]:
        record = build_enriched_record(user_id, plan, request, metadata)

        saved = self.repository.insert_workout(record)
        if not saved or saved.get('id') is None:
            raise PersistenceFailure('Workout store did not return a saved record')

        print(f"💾 Saved workout {saved['id']} '{saved['name']}' for user {user_id}")
        return saved
