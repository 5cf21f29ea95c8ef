import json
import logging
import os
import time

from dateutil import parser as date_parser
from flask import Flask, g, jsonify, request
from pydantic import ValidationError

from ai_service import AIService
from config import DevelopmentConfig, config
from conversation_store import ConversationStore
from errors import PersistenceFailure, TrainerError
from models import Database, WorkoutRepository
from schemas import CompleteWorkoutBody, GenerateWorkoutBody, MessageRequest
from trainer_service import TrainerService


def _validation_error(e: ValidationError):
    return jsonify({'error': 'Invalid request', 'details': [err['msg'] for err in e.errors()]}), 400


def create_app(config_class=DevelopmentConfig, ai_service: AIService = None):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(logging.DEBUG if app.config['DEBUG'] else logging.INFO)

    # Initialize services
    db = Database(app.config['DATABASE_PATH'], timeout=app.config['STORE_TIMEOUT'])
    workout_repository = WorkoutRepository(db)
    conversation_store = ConversationStore(db)
    if ai_service is None:
        ai_service = AIService(
            api_key=app.config['OPENAI_API_KEY'],
            model=app.config['OPENAI_MODEL'],
            timeout=app.config['MODEL_TIMEOUT']
        )
    trainer = TrainerService(ai_service, workout_repository, conversation_store)

    app.extensions['trainer'] = trainer
    app.extensions['workout_repository'] = workout_repository
    app.extensions['conversation_store'] = conversation_store

    @app.before_request
    def start_timer():
        g.request_started = time.time()

    @app.after_request
    def log_api_request(response):
        if request.path.startswith('/api'):
            duration = int((time.time() - g.get('request_started', time.time())) * 1000)
            log_line = f"{request.method} {request.path} {response.status_code} in {duration}ms"
            if response.is_json:
                log_line += f" :: {json.dumps(response.get_json())}"

            limit = app.config['LOG_LINE_LIMIT']
            if len(log_line) > limit:
                log_line = log_line[:limit - 1] + "…"
            app.logger.info(log_line)
        return response

    @app.route('/api/health')
    def health():
        """Connection check for the mobile app"""
        return jsonify({'status': 'ok'})

    @app.route('/api/trainer/conversation')
    def get_conversation():
        user_id = request.args.get('userId')
        conversation_id = request.args.get('conversationId', type=int)

        try:
            if conversation_id is None:
                conversation_id = conversation_store.latest_conversation_id(user_id)
            messages = conversation_store.get_messages(conversation_id)
        except PersistenceFailure as e:
            app.logger.error(f"Conversation load error: {e}")
            return jsonify({'error': 'Failed to load conversation'}), 500

        return jsonify({
            'messages': [m.model_dump() for m in messages],
            'conversationId': conversation_id
        })

    @app.route('/api/trainer/message', methods=['POST'])
    def trainer_message():
        try:
            body = MessageRequest.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)

        reply, status = trainer.handle_message(body.message, body.userId, body.conversationId)
        if status >= 500:
            app.logger.error(f"Trainer message failed for user {body.userId}")
        return jsonify(reply.model_dump(exclude_none=True)), status

    @app.route('/api/generate-workout', methods=['POST'])
    def generate_workout():
        try:
            body = GenerateWorkoutBody.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)

        try:
            workout = trainer.generate_workout(body.userId, body.preferences, body.duration, body.difficulty)
        except TrainerError as e:
            app.logger.error(f"Workout generation error: {type(e).__name__}: {e}")
            return jsonify({'error': 'Failed to generate workout'}), 500

        return jsonify({
            'success': True,
            'workout': workout,
            'message': 'Workout generated and saved!',
            'savedToLibrary': True
        })

    @app.route('/api/trainer/exercise-form/<path:exercise_name>')
    def exercise_form(exercise_name):
        try:
            form = trainer.get_exercise_form(exercise_name)
        except TrainerError as e:
            app.logger.error(f"Exercise form error: {e}")
            return jsonify({'error': 'Failed to get exercise guidance'}), 503

        return jsonify(form.model_dump())

    @app.route('/api/workouts', methods=['GET'])
    def list_workouts():
        workouts = workout_repository.list_workouts(request.args.get('userId'))
        return jsonify(workouts)

    @app.route('/api/workouts', methods=['POST'])
    def save_workout():
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not str(data.get('name', '')).strip():
            return jsonify({'error': 'Workout name is required'}), 400

        # Hand-saved workouts never claim to be generated
        data = {**data, 'autoGenerated': False, 'createdBy': data.get('createdBy') or 'user'}
        data.pop('analytics', None)

        saved = workout_repository.insert_workout(data)
        return jsonify(saved), 201

    @app.route('/api/workouts/<int:workout_id>', methods=['DELETE'])
    def delete_workout(workout_id):
        if not workout_repository.delete_workout(workout_id):
            return jsonify({'error': 'Workout not found'}), 404
        return '', 204

    @app.route('/api/workouts/<int:workout_id>/complete', methods=['POST'])
    def complete_workout(workout_id):
        try:
            body = CompleteWorkoutBody.model_validate(request.get_json(silent=True) or {})
        except ValidationError as e:
            return _validation_error(e)

        completed_at = None
        if body.completedAt:
            try:
                completed_at = date_parser.parse(body.completedAt, fuzzy=True)
            except (ValueError, OverflowError):
                return jsonify({'error': f"Could not understand completedAt '{body.completedAt}'"}), 400

        analytics = workout_repository.record_completion(workout_id, body.duration, completed_at)
        if analytics is None:
            return jsonify({'error': 'Workout not found'}), 404
        return jsonify({'success': True, 'analytics': analytics})

    @app.errorhandler(PersistenceFailure)
    def persistence_failure(error):
        app.logger.error(f"Workout store error: {error}")
        return jsonify({'error': 'Workout storage is unavailable'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal error: {error}")
        return jsonify({'error': 'Internal Server Error'}), 500

    return app


if __name__ == '__main__':
    app = create_app(config[os.getenv('FLASK_CONFIG', 'default')])
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=app.config['DEBUG'])
