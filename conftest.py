import json
from urllib.parse import urlsplit

import pytest
import requests

from app import create_app
from config import TestingConfig
from conversation_store import ConversationStore
from errors import ModelUnavailable
from models import Database, WorkoutRepository
from trainer_service import TrainerService

SAMPLE_WORKOUT = {
    "name": "20-Minute HIIT Blast",
    "description": "Fast intervals to get the heart rate up",
    "warmup": [
        {"name": "Jumping Jacks", "durationSeconds": 60, "instructions": "Stay light on your feet"}
    ],
    "main": [
        {"name": "Squat Jumps", "sets": 3, "reps": "12-15", "restSeconds": 30, "instructions": "Land softly"},
        {"name": "Push-ups", "sets": 3, "reps": 10, "restSeconds": 30, "instructions": "Keep a straight line"},
        {"name": "Plank", "durationSeconds": 45, "instructions": "Brace your core"}
    ],
    "cooldown": [
        {"name": "Hamstring Stretch", "durationSeconds": 60, "instructions": "Breathe slowly"}
    ]
}


def wrapped_reply(workout=None):
    """A model reply with prose around the JSON, the way models usually answer"""
    return ("Here is your workout!\n```json\n" + json.dumps(workout or SAMPLE_WORKOUT) +
            "\n```\nHave fun and stay hydrated.")


class FakeAIService:
    """Stands in for AIService; replies are queued per method"""

    def __init__(self, generated=None, chat_reply='Happy to help with your training!'):
        self.generated = generated if generated is not None else wrapped_reply()
        self.chat_reply = chat_reply
        self.prompts = []
        self.chats = []

    def generate_text(self, prompt):
        self.prompts.append(prompt)
        if isinstance(self.generated, Exception):
            raise self.generated
        return self.generated

    def chat(self, message, history=None, purpose='general_chat'):
        self.chats.append({'message': message, 'history': history, 'purpose': purpose})
        if isinstance(self.chat_reply, Exception):
            raise self.chat_reply
        return self.chat_reply


class FlaskSession:
    """requests.Session look-alike that sends everything to a Flask test client"""

    def __init__(self, client):
        self.client = client
        self.headers = {}
        self.calls = []

    def request(self, method, url, timeout=None, params=None, json=None):
        path = urlsplit(url).path
        self.calls.append((method, path, params, json))
        flask_response = self.client.open(path, method=method, query_string=params, json=json)

        response = requests.Response()
        response.status_code = flask_response.status_code
        response._content = flask_response.get_data()
        response.headers['Content-Type'] = flask_response.headers.get('Content-Type', '')
        response.url = url
        return response


class OfflineSession:
    def __init__(self):
        self.headers = {}
        self.calls = 0

    def request(self, method, url, timeout=None, **kwargs):
        self.calls += 1
        raise requests.ConnectionError('Network is unreachable')


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / 'workouts.db'), timeout=1.0)


@pytest.fixture
def repository(db):
    return WorkoutRepository(db)


@pytest.fixture
def conversation_store(db):
    return ConversationStore(db)


@pytest.fixture
def trainer(fake_ai, repository, conversation_store):
    return TrainerService(fake_ai, repository, conversation_store)


@pytest.fixture
def app(tmp_path, fake_ai):
    class Config(TestingConfig):
        DATABASE_PATH = str(tmp_path / 'app.db')

    return create_app(Config, ai_service=fake_ai)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def unavailable_model():
    return ModelUnavailable('Model timed out after 10.0s')
