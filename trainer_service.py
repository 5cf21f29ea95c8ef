from typing import Any, Dict, Optional, Tuple

from ai_service import AIService
from conversation_store import ConversationStore
from errors import PersistenceFailure, TrainerError
from models import WorkoutRepository
from schemas import ConversationMessage, ExerciseForm, TrainerReply, WorkoutGenerationRequest
from workout_pipeline.intent import classify_message, extract_parameters
from workout_pipeline.metadata import derive_metadata
from workout_pipeline.parser import parse_workout_response
from workout_pipeline.persistence import WorkoutPersistence
from workout_pipeline.prompts import build_form_prompt, build_workout_prompt

FALLBACK_REPLY = "Sorry, I had trouble processing that. Please try again in a moment."


def workout_reply_text(workout: Dict[str, Any]) -> str:
    return f"""Great! I've created a {workout['duration']}-minute {workout['difficulty']} workout for you: "{workout['name']}". It's been automatically saved to your library!

Here's what I've prepared:
- Duration: {workout['duration']} minutes
- Difficulty: {workout['difficulty']}
- Estimated calories: {workout['estimatedCalories']}

Would you like me to walk you through the exercises?"""


class TrainerService:
    """Runs one chat message through classification, generation and storage"""

    def __init__(self, ai_service: AIService, repository: WorkoutRepository,
                 conversation_store: ConversationStore):
        self.ai = ai_service
        self.persistence = WorkoutPersistence(repository)
        self.conversations = conversation_store

    def generate_workout(self, user_id, preferences: str, duration: int, difficulty: str) -> Dict[str, Any]:
        """Generate, enrich and save one workout. Raises TrainerError subclasses on failure."""
        request = WorkoutGenerationRequest(
            userId=user_id,
            durationMinutes=duration,
            difficulty=difficulty,
            preferences=preferences or ''
        )

        prompt = build_workout_prompt(request)
        raw_output = self.ai.generate_text(prompt)
        plan = parse_workout_response(raw_output)
        metadata = derive_metadata(plan, request)

        print(f"🏋️ Generated '{plan.name}': {len(plan.warmup)}/{len(plan.main)}/{len(plan.cooldown)} "
              f"segments, {metadata.estimatedCalories} kcal")
        return self.persistence.save(user_id, plan, request, metadata)

    def handle_message(self, message: str, user_id=None,
                       conversation_id: Optional[int] = None) -> Tuple[TrainerReply, int]:
        """Answer one chat message; returns the reply and an HTTP status.

        Failures never escape: the user gets a fixed apology and the status
        is 500 so monitoring can see it.
        """
        conversation_id, history = self._open_conversation(user_id, conversation_id)
        self._record(conversation_id, ConversationMessage(role='user', content=message))

        try:
            if classify_message(message).is_workout_request:
                print(f"🎯 Workout request: '{message}'")
                reply = self._workout_reply(message, user_id, conversation_id)
            else:
                text = self.ai.chat(message, history)
                reply = TrainerReply(
                    type='message',
                    response=text,
                    message=ConversationMessage(role='assistant', content=text),
                    conversationId=conversation_id
                )
        except TrainerError as e:
            print(f"⚠️ Trainer message failed ({type(e).__name__}): {e}")
            return self._fallback(conversation_id), 500
        except Exception as e:
            print(f"❌ Unexpected error handling trainer message: {type(e).__name__}: {e}")
            return self._fallback(conversation_id), 500

        self._record(conversation_id, reply.message)
        return reply, 200

    def get_exercise_form(self, exercise_name: str) -> ExerciseForm:
        guidance = self.ai.chat(build_form_prompt(exercise_name), purpose='exercise_form')
        return ExerciseForm(exercise=exercise_name, guidance=guidance)

    def _workout_reply(self, message: str, user_id, conversation_id: Optional[int]) -> TrainerReply:
        params = extract_parameters(message)
        workout = self.generate_workout(
            user_id,
            preferences=params.preferences,
            duration=params.duration_minutes,
            difficulty=params.difficulty
        )

        text = workout_reply_text(workout)
        return TrainerReply(
            type='workout',
            response=text,
            message=ConversationMessage(role='assistant', content=text),
            conversationId=conversation_id,
            workoutGenerated=True,
            workoutId=workout['id'],
            workout=workout
        )

    def _fallback(self, conversation_id: Optional[int]) -> TrainerReply:
        return TrainerReply(
            type='message',
            response=FALLBACK_REPLY,
            message=ConversationMessage(role='assistant', content=FALLBACK_REPLY),
            conversationId=conversation_id
        )

    def _open_conversation(self, user_id, conversation_id: Optional[int]):
        try:
            conversation_id = self.conversations.resolve(user_id, conversation_id)
            return conversation_id, self.conversations.get_recent_window(conversation_id)
        except PersistenceFailure as e:
            print(f"⚠️ Conversation store unavailable: {e}")
            return None, []

    def _record(self, conversation_id: Optional[int], message: ConversationMessage):
        # The transcript is best effort; a failed append must not fail the reply
        if conversation_id is None:
            return
        try:
            self.conversations.append_message(conversation_id, message)
        except PersistenceFailure as e:
            print(f"⚠️ Could not record {message.role} message in conversation {conversation_id}: {e}")
