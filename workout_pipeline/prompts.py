from schemas import WorkoutGenerationRequest

WORKOUT_KEYS = ('name', 'description', 'warmup', 'main', 'cooldown')

WORKOUT_FORMAT = """{
  "name": "Workout name",
  "description": "Brief description",
  "warmup": [
    {
      "name": "Exercise name",
      "durationSeconds": 60,
      "instructions": "How to perform"
    }
  ],
  "main": [
    {
      "name": "Exercise name",
      "sets": 3,
      "reps": "12-15",
      "restSeconds": 60,
      "instructions": "How to perform"
    }
  ],
  "cooldown": [
    {
      "name": "Exercise name",
      "durationSeconds": 60,
      "instructions": "How to perform"
    }
  ]
}"""


def build_workout_prompt(request: WorkoutGenerationRequest) -> str:
    """Build the generation prompt for one workout request.

    The reply parser takes the first complete JSON object in the model's
    answer, so the prompt insists on a single object and nothing else.
    """
    preferences = request.preferences or 'general fitness'

    prompt = f"""Generate a {request.durationMinutes}-minute {request.difficulty} fitness workout routine.
User preferences: {preferences}

Return ONLY one valid JSON object in this exact format, no other text, no markdown:
{WORKOUT_FORMAT}

Rules:
- Use exactly these top-level keys: {', '.join(WORKOUT_KEYS)}
- Timed exercises use durationSeconds; set-based exercises use sets, reps and restSeconds
- All times are whole numbers of seconds
- The exercises should fit in {request.durationMinutes} minutes in total"""

    return prompt


def build_form_prompt(exercise_name: str) -> str:
    """Prompt for step-by-step form guidance on a single exercise"""
    return f"""Explain proper form for the exercise: {exercise_name}

Cover setup, execution, breathing and the most common mistakes.
Keep it concise and use short bullet points."""
