import pytest

from errors import SendInProgress, TransportFailure
from schemas import ConversationHistory, ConversationMessage, ExerciseForm, TrainerReply
from trainer_client.conversation_state import (ERRORED, FORM_ERROR, GENERATE_ERROR, IDLE, LOAD_ERROR,
                                               LOADING_HISTORY, READY, SEND_ERROR, SENDING,
                                               ConversationController, ConversationState, ErrorCleared,
                                               HistoryLoaded, LoadFailed, LoadStarted, MessageSent,
                                               ResponseReceived, SendFailed, reduce, route_reply)


def user(text):
    return ConversationMessage(role='user', content=text)


def assistant(text):
    return ConversationMessage(role='assistant', content=text)


def chat_reply(text='Keep your back flat.', conversation_id=4):
    return TrainerReply(type='message', response=text, message=assistant(text), conversationId=conversation_id)


class FakeApi:
    def __init__(self, history=(), reply=None, error=None):
        self.history = ConversationHistory(messages=list(history), conversationId=4 if history else None)
        self.reply = reply or chat_reply()
        self.error = error
        self.sent = []
        self.on_send = None

    def get_conversation(self, conversation_id=None):
        if self.error:
            raise self.error
        return self.history

    def send_message(self, message, conversation_id=None):
        self.sent.append((message, conversation_id))
        if self.on_send:
            self.on_send()
        if self.error:
            raise self.error
        return self.reply

    def generate_workout(self, preferences, duration, difficulty='intermediate'):
        if self.error:
            raise self.error
        return {'id': 1, 'name': 'Quick legs', 'warmup': [{}], 'main': [{}, {}], 'cooldown': [{}]}

    def get_exercise_form(self, exercise_name):
        if self.error:
            raise self.error
        return ExerciseForm(exercise=exercise_name, guidance='Chest up, knees out.')


def test_load_then_chat_lifecycle():
    state = ConversationState()
    assert state.status == IDLE

    state = reduce(state, LoadStarted())
    assert state.status == LOADING_HISTORY and state.is_loading

    state = reduce(state, HistoryLoaded((user('hi'), assistant('hello')), conversation_id=4))
    assert state.status == READY and state.conversation_id == 4

    state = reduce(state, MessageSent(user('how many sets?')))
    assert state.status == SENDING and state.is_typing
    assert state.messages[-1].content == 'how many sets?'

    state = reduce(state, ResponseReceived(assistant('Three.')))
    assert state.status == READY
    assert [m.content for m in state.messages] == ['hi', 'hello', 'how many sets?', 'Three.']
    assert state.pending is None


def test_failed_send_keeps_the_optimistic_message():
    state = reduce(ConversationState(status=READY), MessageSent(user('hello?')))
    state = reduce(state, SendFailed())

    assert state.status == ERRORED
    assert state.error == SEND_ERROR
    assert [m.role for m in state.messages] == ['user']
    assert not state.is_typing


def test_second_send_while_typing_is_ignored():
    state = reduce(ConversationState(), MessageSent(user('first')))
    again = reduce(state, MessageSent(user('second')))

    assert again is state


def test_stale_response_after_failure_is_dropped():
    state = reduce(ConversationState(), MessageSent(user('first')))
    state = reduce(state, SendFailed())

    assert reduce(state, ResponseReceived(assistant('late'))) is state


def test_reload_during_send_keeps_the_pending_message_in_order():
    state = reduce(ConversationState(), HistoryLoaded((user('old'), assistant('old reply'))))
    state = reduce(state, MessageSent(user('new question')))

    # History load lands before the server has recorded the new message
    state = reduce(state, HistoryLoaded((user('old'), assistant('old reply'))))
    assert [m.content for m in state.messages] == ['old', 'old reply', 'new question']
    assert state.is_typing

    state = reduce(state, ResponseReceived(assistant('new answer')))
    assert [m.content for m in state.messages] == ['old', 'old reply', 'new question', 'new answer']


def test_reload_during_send_does_not_duplicate_a_recorded_message():
    state = reduce(ConversationState(), MessageSent(user('new question')))
    state = reduce(state, HistoryLoaded((user('new question'),)))

    assert [m.content for m in state.messages] == ['new question']


def test_reload_after_the_server_answered_settles_the_send():
    state = reduce(ConversationState(), HistoryLoaded((user('old'), assistant('old reply'))))
    state = reduce(state, MessageSent(user('q')))

    state = reduce(state, HistoryLoaded((user('old'), assistant('old reply'), user('q'), assistant('answer'))))
    assert [m.content for m in state.messages] == ['old', 'old reply', 'q', 'answer']
    assert state.status == READY
    assert state.pending is None and not state.is_typing

    assert reduce(state, ResponseReceived(assistant('answer'))) is state
    assert reduce(state, SendFailed()) is state


def test_reload_with_only_the_answered_message():
    state = reduce(ConversationState(), MessageSent(user('q')))
    state = reduce(state, HistoryLoaded((user('q'), assistant('answer'))))
    state = reduce(state, ResponseReceived(assistant('answer')))

    assert [m.content for m in state.messages] == ['q', 'answer']


def test_failed_send_keeps_the_server_conversation_id():
    state = reduce(ConversationState(), MessageSent(user('hello')))
    state = reduce(state, SendFailed(conversation_id=12))

    assert state.conversation_id == 12
    assert state.error == SEND_ERROR


def test_load_failure_and_clear():
    state = reduce(reduce(ConversationState(), LoadStarted()), LoadFailed())
    assert state.status == ERRORED and state.error == LOAD_ERROR

    state = reduce(state, ErrorCleared())
    assert state.status == READY and state.error is None


def test_unknown_events_are_rejected():
    with pytest.raises(TypeError):
        reduce(ConversationState(), object())


def test_reply_routing():
    assert route_reply(chat_reply('hi')).type == 'message'

    workout = TrainerReply(type='workout', response='Done', message=assistant('Done'),
                           workoutGenerated=True, workoutId=7, workout={'id': 7, 'name': 'Legs'})
    payload = route_reply(workout)
    assert payload.type == 'workout' and payload.data['id'] == 7

    form = ExerciseForm(exercise='Squat', guidance='Knees out')
    payload = route_reply(TrainerReply(type='exerciseForm', response='Knees out',
                                       message=assistant('Knees out'), exerciseForm=form))
    assert payload.type == 'exerciseForm' and payload.data == form


def test_controller_loads_and_sends():
    api = FakeApi(history=[user('hi'), assistant('hello')])
    controller = ConversationController(api)

    assert controller.load() is True
    payload = controller.send_message('  how do I deadlift?  ')

    assert payload.type == 'message'
    assert api.sent == [('how do I deadlift?', 4)]
    assert [m.content for m in controller.messages] == ['hi', 'hello', 'how do I deadlift?', 'Keep your back flat.']
    assert controller.state.status == READY


def test_blank_input_is_not_sent():
    api = FakeApi()
    controller = ConversationController(api)

    assert controller.send_message('   ') is None
    assert api.sent == []
    assert controller.messages == ()


def test_offline_send_surfaces_one_error():
    controller = ConversationController(FakeApi(error=TransportFailure('Failed sending message')))
    seen = []
    controller.subscribe(seen.append)

    with pytest.raises(TransportFailure):
        controller.send_message('are you there?')

    assert [m.role for m in controller.messages] == ['user']
    assert controller.state.error == SEND_ERROR
    assert len([s for s in seen if s.error]) == 1


def test_failed_first_send_reuses_the_server_conversation():
    apology = {'type': 'message', 'response': 'Sorry', 'conversationId': 31}
    api = FakeApi(error=TransportFailure('Failed sending message', status_code=500, payload=apology))
    controller = ConversationController(api)

    with pytest.raises(TransportFailure):
        controller.send_message('first try')

    api.error = None
    controller.send_message('second try')
    assert api.sent == [('first try', None), ('second try', 31)]


def test_sending_twice_at_once_is_refused():
    api = FakeApi()
    controller = ConversationController(api)
    refused = []

    def send_again():
        with pytest.raises(SendInProgress):
            controller.send_message('second')
        refused.append(True)

    api.on_send = send_again
    controller.send_message('first')

    assert refused == [True]
    assert [m.content for m in controller.messages] == ['first', 'Keep your back flat.']


def test_failed_load_can_be_retried():
    api = FakeApi(history=[assistant('welcome back')], error=TransportFailure('Failed loading conversation'))
    controller = ConversationController(api)

    assert controller.load() is False
    assert controller.state.error == LOAD_ERROR

    api.error = None
    assert controller.retry() is True
    assert controller.state.error is None
    assert [m.content for m in controller.messages] == ['welcome back']


def test_unsubscribe_stops_notifications():
    controller = ConversationController(FakeApi())
    seen = []
    unsubscribe = controller.subscribe(seen.append)

    controller.load()
    assert [s.status for s in seen] == [LOADING_HISTORY, READY]

    unsubscribe()
    controller.load()
    assert len(seen) == 2


def test_generate_workout_appends_summary():
    controller = ConversationController(FakeApi())

    payload = controller.generate_workout('legs', 25)

    assert payload.type == 'workout'
    assert controller.messages[-1].content.startswith("I've created a personalized 25-minute workout for you!")
    assert 'includes 4 exercises' in controller.messages[-1].content


def test_exercise_form_appends_guidance():
    controller = ConversationController(FakeApi())

    payload = controller.get_exercise_form('Squat')

    assert payload.data.guidance == 'Chest up, knees out.'
    assert controller.messages[-1].content == "Here's proper form guidance for Squat:\n\nChest up, knees out."


@pytest.mark.parametrize('action, error', [
    (lambda c: c.generate_workout('legs', 25), GENERATE_ERROR),
    (lambda c: c.get_exercise_form('Squat'), FORM_ERROR),
])
def test_assistant_requests_report_their_own_error(action, error):
    controller = ConversationController(FakeApi(error=TransportFailure('offline')))

    with pytest.raises(TransportFailure):
        action(controller)

    assert controller.state.error == error
    assert controller.messages == ()
