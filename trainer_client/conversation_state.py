"""Client-side trainer conversation: an explicit state container.

All transitions go through ``reduce(state, event)``, a pure function, so the
chat screen (or a test) can replay any sequence of events without a network.
``ConversationController`` wires the reducer to ``ApiClient``.

Concurrency rules:

* only one send may be outstanding; a second send raises SendInProgress and
  leaves the state untouched;
* a history reload that lands while a send is outstanding replaces the
  transcript and re-appends the pending user message, unless the tail of the
  server history already holds it. The assistant reply is appended after it
  when the send completes, so chronological order holds;
* if the reloaded tail already holds the answer as well, the send counts as
  done and the reply still in flight is dropped as stale, as is a late
  failure for it.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Tuple

from errors import SendInProgress, TransportFailure
from schemas import ConversationMessage, TrainerReply
from trainer_client.api_client import ApiClient

IDLE = 'idle'
LOADING_HISTORY = 'loadingHistory'
READY = 'ready'
SENDING = 'sending'
ERRORED = 'errored'

LOAD_ERROR = 'Failed to load conversation'
SEND_ERROR = 'Failed to send message. Please check your connection.'
GENERATE_ERROR = 'Failed to generate workout'
FORM_ERROR = 'Failed to get exercise guidance'


@dataclass(frozen=True)
class ConversationState:
    status: str = IDLE
    messages: Tuple[ConversationMessage, ...] = ()
    is_loading: bool = False
    is_typing: bool = False
    conversation_id: Optional[int] = None
    error: Optional[str] = None
    pending: Optional[ConversationMessage] = None


# Events

@dataclass(frozen=True)
class LoadStarted:
    pass


@dataclass(frozen=True)
class HistoryLoaded:
    messages: Tuple[ConversationMessage, ...]
    conversation_id: Optional[int] = None


@dataclass(frozen=True)
class LoadFailed:
    error: str = LOAD_ERROR


@dataclass(frozen=True)
class MessageSent:
    message: ConversationMessage


@dataclass(frozen=True)
class TypingStarted:
    """The assistant is working on a request that has no user message"""


@dataclass(frozen=True)
class ResponseReceived:
    message: ConversationMessage
    conversation_id: Optional[int] = None


@dataclass(frozen=True)
class SendFailed:
    error: str = SEND_ERROR
    conversation_id: Optional[int] = None


@dataclass(frozen=True)
class ErrorCleared:
    pass


@dataclass(frozen=True)
class ReplyPayload:
    """What the screen should do with a reply: render text, or open a dedicated view"""
    type: str
    data: Any


def _settled(state: ConversationState) -> str:
    if state.is_typing:
        return SENDING
    if state.is_loading:
        return LOADING_HISTORY
    if state.error:
        return ERRORED
    return READY


def _pending_position(history: Tuple[ConversationMessage, ...], pending: ConversationMessage) -> Optional[int]:
    """Index of the in-flight user message in a reloaded history, or None.

    Only the last two entries are searched: the message itself, possibly
    followed by the answer the server has already stored.
    """
    for index in range(len(history) - 1, max(len(history) - 3, -1), -1):
        message = history[index]
        if message.role == pending.role and message.content == pending.content:
            return index
    return None


def _answered(history: Tuple[ConversationMessage, ...], position: int) -> bool:
    return any(message.role == 'assistant' for message in history[position + 1:])


def reduce(state: ConversationState, event) -> ConversationState:
    if isinstance(event, LoadStarted):
        state = replace(state, is_loading=True, error=None)

    elif isinstance(event, HistoryLoaded):
        messages = tuple(event.messages)
        pending = state.pending
        is_typing = state.is_typing
        if pending is not None:
            position = _pending_position(messages, pending)
            if position is None:
                messages = messages + (pending,)
            elif _answered(messages, position):
                # The server already holds the answer; the reply still in flight is stale
                pending = None
                is_typing = False
        state = replace(
            state,
            messages=messages,
            is_loading=False,
            is_typing=is_typing,
            pending=pending,
            conversation_id=event.conversation_id if event.conversation_id is not None else state.conversation_id
        )

    elif isinstance(event, LoadFailed):
        state = replace(state, is_loading=False, error=event.error)

    elif isinstance(event, MessageSent):
        if state.is_typing:
            return state
        state = replace(
            state,
            messages=state.messages + (event.message,),
            is_typing=True,
            pending=event.message,
            error=None
        )

    elif isinstance(event, TypingStarted):
        if state.is_typing:
            return state
        state = replace(state, is_typing=True, error=None)

    elif isinstance(event, ResponseReceived):
        if not state.is_typing:
            # Stale reply for a request that already failed
            return state
        state = replace(
            state,
            messages=state.messages + (event.message,),
            is_typing=False,
            pending=None,
            conversation_id=event.conversation_id if event.conversation_id is not None else state.conversation_id
        )

    elif isinstance(event, SendFailed):
        if not state.is_typing:
            return state
        # The optimistic user message stays: the user really sent it
        state = replace(
            state,
            is_typing=False,
            pending=None,
            error=event.error,
            conversation_id=event.conversation_id if event.conversation_id is not None else state.conversation_id
        )

    elif isinstance(event, ErrorCleared):
        state = replace(state, error=None)

    else:
        raise TypeError(f"Unknown conversation event: {event!r}")

    return replace(state, status=_settled(state))


def _conversation_id_from(payload) -> Optional[int]:
    if isinstance(payload, dict):
        conversation_id = payload.get('conversationId')
        if isinstance(conversation_id, int) and not isinstance(conversation_id, bool):
            return conversation_id
    return None


def route_reply(reply: TrainerReply) -> ReplyPayload:
    if reply.type == 'workout':
        return ReplyPayload(type='workout', data=reply.workout or {'id': reply.workoutId})
    if reply.type == 'exerciseForm':
        return ReplyPayload(type='exerciseForm', data=reply.exerciseForm)
    return ReplyPayload(type='message', data=reply.message)


class ConversationController:
    def __init__(self, api: ApiClient):
        self.api = api
        self.state = ConversationState()
        self._listeners: List[Callable[[ConversationState], None]] = []

    def subscribe(self, listener: Callable[[ConversationState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def dispatch(self, event) -> ConversationState:
        previous = self.state
        self.state = reduce(previous, event)
        if self.state != previous:
            for listener in list(self._listeners):
                listener(self.state)
        return self.state

    @property
    def messages(self) -> Tuple[ConversationMessage, ...]:
        return self.state.messages

    def load(self) -> bool:
        self.dispatch(LoadStarted())
        try:
            history = self.api.get_conversation(self.state.conversation_id)
        except TransportFailure:
            self.dispatch(LoadFailed())
            return False

        self.dispatch(HistoryLoaded(tuple(history.messages), history.conversationId))
        return True

    def retry(self) -> bool:
        """Re-run the history load; the failed message is not resent"""
        return self.load()

    def clear_error(self):
        self.dispatch(ErrorCleared())

    def _ensure_idle(self):
        if self.state.is_typing:
            raise SendInProgress('Wait for the trainer to answer before sending another message')

    def send_message(self, text: str) -> Optional[ReplyPayload]:
        text = (text or '').strip()
        if not text:
            return None
        self._ensure_idle()

        self.dispatch(MessageSent(ConversationMessage(role='user', content=text)))
        try:
            reply = self.api.send_message(text, self.state.conversation_id)
        except TransportFailure as e:
            # A failed first send may still have opened a conversation on the server
            self.dispatch(SendFailed(conversation_id=_conversation_id_from(e.payload)))
            raise

        self.dispatch(ResponseReceived(reply.message, reply.conversationId))
        return route_reply(reply)

    def generate_workout(self, preferences: str, duration: int, difficulty: str = 'intermediate') -> ReplyPayload:
        self._ensure_idle()

        self.dispatch(TypingStarted())
        try:
            workout = self.api.generate_workout(preferences, duration, difficulty)
        except TransportFailure:
            self.dispatch(SendFailed(GENERATE_ERROR))
            raise

        exercise_count = len(workout['warmup']) + len(workout['main']) + len(workout['cooldown'])
        content = (f"I've created a personalized {duration}-minute workout for you! "
                   f"It includes {exercise_count} exercises and has been saved to your library.")
        self.dispatch(ResponseReceived(ConversationMessage(role='assistant', content=content)))
        return ReplyPayload(type='workout', data=workout)

    def get_exercise_form(self, exercise_name: str) -> ReplyPayload:
        self._ensure_idle()

        self.dispatch(TypingStarted())
        try:
            form = self.api.get_exercise_form(exercise_name)
        except TransportFailure:
            self.dispatch(SendFailed(FORM_ERROR))
            raise

        content = f"Here's proper form guidance for {exercise_name}:\n\n{form.guidance}"
        self.dispatch(ResponseReceived(ConversationMessage(role='assistant', content=content)))
        return ReplyPayload(type='exerciseForm', data=form)
