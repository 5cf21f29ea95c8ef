import os


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    return float(value)


class Config:
    # Generative model
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
    MODEL_TIMEOUT = _float_env('MODEL_TIMEOUT', 10.0)  # seconds

    # Workout store
    DATABASE_PATH = os.getenv('DATABASE_PATH', 'workout_logs.db')
    STORE_TIMEOUT = _float_env('STORE_TIMEOUT', 10.0)  # seconds

    # Server
    PORT = int(os.getenv('PORT', '5000'))
    DEBUG = False
    TESTING = False

    # Mobile / CLI client
    API_BASE_URL = os.getenv('API_BASE_URL', 'http://localhost:5000')
    CLIENT_TIMEOUT = _float_env('CLIENT_TIMEOUT', 10.0)  # seconds

    # Request log lines longer than this are cut
    LOG_LINE_LIMIT = 80


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    OPENAI_API_KEY = 'test-key'
    DATABASE_PATH = 'test_workout_logs.db'
    MODEL_TIMEOUT = 1.0
    STORE_TIMEOUT = 1.0


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
