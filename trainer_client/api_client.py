from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from errors import TransportFailure
from schemas import ConversationHistory, ExerciseForm, PersistedWorkout, TrainerReply


class ApiClient:
    """HTTP client the conversation and library state machines talk through.

    Network errors, timeouts, non-2xx statuses and replies that do not match
    the expected schema all surface as TransportFailure.
    """

    def __init__(self, base_url: str = 'http://localhost:5000', timeout: float = 10.0,
                 user_id=None, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.user_id = user_id
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})

    def _request(self, method: str, path: str, action: str, **kwargs):
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            print(f"Error {action}: {e}")
            raise TransportFailure(f"Failed {action}") from e

        if not response.ok:
            print(f"Error {action}: HTTP {response.status_code}")
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise TransportFailure(f"Failed {action}", status_code=response.status_code, payload=payload)
        return response

    def _json(self, response, action: str):
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(f"Failed {action}: reply was not JSON") from e

    # AI Trainer chat

    def get_conversation(self, conversation_id: Optional[int] = None) -> ConversationHistory:
        params = {}
        if self.user_id is not None:
            params['userId'] = self.user_id
        if conversation_id is not None:
            params['conversationId'] = conversation_id

        action = 'loading conversation'
        data = self._json(self._request('GET', '/api/trainer/conversation', action, params=params), action)
        try:
            return ConversationHistory.model_validate(data)
        except ValidationError as e:
            raise TransportFailure(f"Failed {action}: unexpected reply") from e

    def send_message(self, message: str, conversation_id: Optional[int] = None) -> TrainerReply:
        body = {'message': message, 'userId': self.user_id}
        if conversation_id is not None:
            body['conversationId'] = conversation_id

        action = 'sending message'
        data = self._json(self._request('POST', '/api/trainer/message', action, json=body), action)
        try:
            return TrainerReply.model_validate(data)
        except ValidationError as e:
            raise TransportFailure(f"Failed {action}: unexpected reply") from e

    def generate_workout(self, preferences: str, duration: int, difficulty: str = 'intermediate') -> Dict[str, Any]:
        body = {'userId': self.user_id, 'preferences': preferences, 'duration': duration, 'difficulty': difficulty}

        action = 'generating workout'
        data = self._json(self._request('POST', '/api/generate-workout', action, json=body), action)
        if not isinstance(data, dict) or not data.get('success'):
            raise TransportFailure(f"Failed {action}")
        try:
            return PersistedWorkout.model_validate(data.get('workout')).model_dump()
        except ValidationError as e:
            raise TransportFailure(f"Failed {action}: unexpected reply") from e

    def get_exercise_form(self, exercise_name: str) -> ExerciseForm:
        action = 'getting exercise guidance'
        path = f"/api/trainer/exercise-form/{quote(exercise_name, safe='')}"
        data = self._json(self._request('GET', path, action), action)
        try:
            return ExerciseForm.model_validate(data)
        except ValidationError as e:
            raise TransportFailure(f"Failed {action}: unexpected reply") from e

    # Workout library

    def get_user_workouts(self) -> List[Dict[str, Any]]:
        params = {'userId': self.user_id} if self.user_id is not None else {}

        action = 'loading workouts'
        data = self._json(self._request('GET', '/api/workouts', action, params=params), action)
        try:
            return [PersistedWorkout.model_validate(w).model_dump() for w in data]
        except (ValidationError, TypeError) as e:
            raise TransportFailure(f"Failed {action}: unexpected reply") from e

    def save_workout(self, workout_data: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(workout_data)
        payload.setdefault('userId', self.user_id)

        action = 'saving workout'
        data = self._json(self._request('POST', '/api/workouts', action, json=payload), action)
        try:
            return PersistedWorkout.model_validate(data).model_dump()
        except ValidationError as e:
            raise TransportFailure(f"Failed {action}: unexpected reply") from e

    def delete_workout(self, workout_id: int) -> None:
        self._request('DELETE', f"/api/workouts/{workout_id}", 'deleting workout')

    def complete_workout(self, workout_id: int, duration: int) -> Dict[str, Any]:
        action = 'completing workout'
        response = self._request('POST', f"/api/workouts/{workout_id}/complete", action, json={'duration': duration})
        return self._json(response, action)

    def test_connection(self) -> bool:
        """True when the server answers its health check"""
        try:
            self._request('GET', '/api/health', 'checking connection')
        except TransportFailure:
            return False
        return True
