class TrainerError(Exception):
    """Base class for every failure the trainer pipeline reports"""


class WorkoutResponseError(TrainerError):
    """The model replied, but not with a usable workout"""


class MalformedResponse(WorkoutResponseError):
    """No JSON object could be located or decoded in the model reply"""


class InvalidShape(WorkoutResponseError):
    """JSON was found but does not look like a workout plan"""

    def __init__(self, message: str, problems=None):
        super().__init__(message)
        self.problems = problems or []


class ModelUnavailable(TrainerError):
    """Generative backend timed out or returned an error"""


class PersistenceFailure(TrainerError):
    """The workout store rejected a read or write"""


class TransportFailure(TrainerError):
    """Client could not reach the server or got an unusable reply"""

    def __init__(self, message: str, status_code: int = None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        # Decoded JSON body of an error reply, when the server sent one
        self.payload = payload


class SendInProgress(TrainerError):
    """A message is already in flight for this conversation"""
