from types import SimpleNamespace

import openai
import pytest

from ai_service import AIService
from errors import ModelUnavailable


class FakeCompletions:
    def __init__(self, content='Stay consistent!', error=None, choices=True):
        self.content = content
        self.error = error
        self.choices = choices
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def make_service(**kwargs):
    completions = FakeCompletions(**kwargs)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return AIService(api_key='test-key', model='test-model', timeout=2.5, client=client), completions


def test_generate_text_sends_system_and_user_prompt():
    service, completions = make_service(content='{"name": "x"}')

    assert service.generate_text('Build a workout') == '{"name": "x"}'

    call = completions.calls[0]
    assert call['model'] == 'test-model'
    assert call['timeout'] == 2.5
    assert [m['role'] for m in call['messages']] == ['system', 'user']
    assert call['messages'][-1]['content'] == 'Build a workout'


def test_chat_keeps_only_the_last_three_exchanges():
    service, completions = make_service()
    history = []
    for i in range(5):
        history.append({'role': 'user', 'content': f"q{i}"})
        history.append({'role': 'assistant', 'content': f"a{i}"})

    service.chat('latest question', history)

    sent = completions.calls[0]['messages']
    assert sent[0]['role'] == 'system'
    assert [m['content'] for m in sent[1:]] == ['q2', 'a2', 'q3', 'a3', 'q4', 'a4', 'latest question']


def test_chat_uses_the_purpose_prompt():
    service, completions = make_service()

    service.chat('How do I squat?', purpose='exercise_form')

    assert completions.calls[0]['messages'][0]['content'] == service.system_prompts['exercise_form']


def test_backend_errors_become_model_unavailable():
    service, _ = make_service(error=openai.OpenAIError('boom'))

    with pytest.raises(ModelUnavailable):
        service.generate_text('anything')


@pytest.mark.parametrize('kwargs', [{'content': ''}, {'content': '   '}, {'content': None}, {'choices': False}])
def test_empty_answers_become_model_unavailable(kwargs):
    service, _ = make_service(**kwargs)

    with pytest.raises(ModelUnavailable):
        service.chat('hello')


def test_missing_api_key_is_model_unavailable(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)

    with pytest.raises(ModelUnavailable):
        AIService(api_key=None).generate_text('anything')
