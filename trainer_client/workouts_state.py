from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from errors import TransportFailure
from trainer_client.api_client import ApiClient


@dataclass(frozen=True)
class WorkoutsState:
    workouts: List[Dict[str, Any]] = field(default_factory=list)
    is_loading: bool = False
    refreshing: bool = False
    error: Optional[str] = None


class WorkoutLibrary:
    """Workout library screen state: load, refresh, save, delete, complete"""

    def __init__(self, api: ApiClient):
        self.api = api
        self.state = WorkoutsState()

    @property
    def workouts(self) -> List[Dict[str, Any]]:
        return self.state.workouts

    def load(self) -> bool:
        self.state = replace(self.state, is_loading=True, error=None)
        try:
            workouts = self.api.get_user_workouts()
        except TransportFailure:
            self.state = replace(self.state, is_loading=False, refreshing=False, error='Failed to load workouts')
            return False

        self.state = replace(self.state, workouts=workouts, is_loading=False, refreshing=False)
        return True

    def refresh(self) -> bool:
        self.state = replace(self.state, refreshing=True)
        return self.load()

    retry = load

    def delete(self, workout_id: int):
        # Only drop it locally once the server agrees
        self.api.delete_workout(workout_id)
        self.state = replace(self.state, workouts=[w for w in self.state.workouts if w['id'] != workout_id])

    def save(self, workout_data: Dict[str, Any]) -> Dict[str, Any]:
        saved = self.api.save_workout(workout_data)
        self.state = replace(self.state, workouts=[saved] + self.state.workouts)
        return saved

    def complete(self, workout_id: int, duration: int) -> Dict[str, Any]:
        result = self.api.complete_workout(workout_id, duration)
        analytics = result.get('analytics')
        if analytics:
            self.state = replace(self.state, workouts=[
                {**w, 'analytics': analytics} if w['id'] == workout_id else w
                for w in self.state.workouts
            ])
        return result
