import json
from typing import Optional

from pydantic import ValidationError

from errors import InvalidShape, MalformedResponse
from schemas import WorkoutPlan


def find_json_span(text: str) -> Optional[str]:
    """Return the first balanced {...} span in text, or None.

    Braces inside JSON strings (and escaped quotes) do not count towards
    the nesting depth. Anything after the first complete object is ignored.
    """
    start = text.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    return None


def _describe(error: ValidationError):
    problems = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ()))
        problems.append(f"{location or '<root>'}: {item.get('msg')}")
    return problems


def parse_workout_response(raw) -> WorkoutPlan:
    """Extract and validate the workout JSON embedded in a model reply.

    Raises MalformedResponse when there is no decodable JSON object and
    InvalidShape when the object is not a workout plan. Nothing else
    escapes.
    """
    if not isinstance(raw, str):
        raise MalformedResponse(f"Expected model text, got {type(raw).__name__}")

    span = find_json_span(raw)
    if span is None:
        raise MalformedResponse('No JSON object found in model response')

    try:
        data = json.loads(span)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and over-long integer literals
        raise MalformedResponse(f"Could not decode JSON in model response: {e}") from e

    try:
        return WorkoutPlan.model_validate(data)
    except ValidationError as e:
        problems = _describe(e)
        raise InvalidShape(f"Workout JSON has the wrong shape ({len(problems)} problems)", problems) from e
