import sqlite3
import json
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from errors import PersistenceFailure

DEFAULT_ANALYTICS = {'timesCompleted': 0, 'lastCompleted': None}


class Database:
    def __init__(self, db_path: str = 'workout_logs.db', timeout: float = 10.0):
        self.db_path = db_path
        self.timeout = timeout
        self.init_database()

    def get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.execute('PRAGMA foreign_keys = ON')
        conn.execute('PRAGMA journal_mode = WAL')
        return conn

    @contextmanager
    def connection(self):
        """Yield a connection, commit on success and report store errors as PersistenceFailure"""
        try:
            conn = self.get_connection()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not open workout store: {e}") from e

        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceFailure(f"Workout store error: {e}") from e
        finally:
            conn.close()

    def init_database(self):
        with self.connection() as conn:
            cursor = conn.cursor()

            # Workout library - generated and hand-made workouts
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT,
                    name TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    duration INTEGER,
                    difficulty TEXT,
                    created_by TEXT NOT NULL DEFAULT 'user',
                    auto_generated BOOLEAN DEFAULT FALSE,
                    exercise_data TEXT NOT NULL DEFAULT '{}',
                    estimated_calories INTEGER DEFAULT 0,
                    target_muscle_groups TEXT DEFAULT '[]',
                    tags TEXT DEFAULT '[]',
                    analytics TEXT NOT NULL DEFAULT '{}',
                    generated_at TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            # One row per finished session
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS workout_completions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    duration INTEGER,
                    completed_at TEXT NOT NULL,
                    FOREIGN KEY (workout_id) REFERENCES workouts (id) ON DELETE CASCADE
                )
            ''')


class WorkoutRepository:
    """sqlite-backed workout library"""

    COLUMNS = '''id, user_id, name, description, duration, difficulty, created_by, auto_generated,
                 exercise_data, estimated_calories, target_muscle_groups, tags, analytics,
                 generated_at, created_at'''

    def __init__(self, db: Database):
        self.db = db

    def insert_workout(self, record: Dict[str, Any]) -> Dict[str, Any]:
        exercise_data = {
            'warmup': record.get('warmup', []),
            'main': record.get('main', []),
            'cooldown': record.get('cooldown', [])
        }
        analytics = record.get('analytics') or DEFAULT_ANALYTICS
        user_id = record.get('userId')

        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO workouts
                (user_id, name, description, duration, difficulty, created_by, auto_generated,
                 exercise_data, estimated_calories, target_muscle_groups, tags, analytics, generated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                str(user_id) if user_id is not None else None,
                record['name'],
                record.get('description', ''),
                record.get('duration'),
                record.get('difficulty'),
                record.get('createdBy', 'user'),
                bool(record.get('autoGenerated', False)),
                json.dumps(exercise_data),
                int(record.get('estimatedCalories', 0)),
                json.dumps(list(record.get('targetMuscleGroups', []))),
                json.dumps(list(record.get('tags', []))),
                json.dumps(analytics),
                record.get('generatedAt')
            ))
            workout_id = cursor.lastrowid

            cursor.execute(f'SELECT {self.COLUMNS} FROM workouts WHERE id = ?', (workout_id,))
            row = cursor.fetchone()

        return self._row_to_workout(row)

    def list_workouts(self, user_id=None) -> List[Dict[str, Any]]:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            if user_id is None:
                cursor.execute(f'SELECT {self.COLUMNS} FROM workouts ORDER BY created_at DESC, id DESC')
            else:
                cursor.execute(f'''
                    SELECT {self.COLUMNS} FROM workouts WHERE user_id = ?
                    ORDER BY created_at DESC, id DESC
                ''', (str(user_id),))
            rows = cursor.fetchall()

        return [self._row_to_workout(row) for row in rows]

    def get_workout(self, workout_id: int) -> Optional[Dict[str, Any]]:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f'SELECT {self.COLUMNS} FROM workouts WHERE id = ?', (workout_id,))
            row = cursor.fetchone()

        return self._row_to_workout(row) if row else None

    def delete_workout(self, workout_id: int) -> bool:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM workouts WHERE id = ?', (workout_id,))
            deleted = cursor.rowcount > 0

        return deleted

    def record_completion(self, workout_id: int, duration: Optional[int] = None,
                          completed_at: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Log a finished session and bump the workout's analytics block"""
        completed_at = completed_at or datetime.now(timezone.utc)
        completed_iso = completed_at.isoformat()

        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT analytics FROM workouts WHERE id = ?', (workout_id,))
            row = cursor.fetchone()
            if not row:
                return None

            analytics = {**DEFAULT_ANALYTICS, **json.loads(row[0] or '{}')}
            analytics['timesCompleted'] = int(analytics.get('timesCompleted') or 0) + 1
            last = analytics.get('lastCompleted')
            if last is None or last < completed_iso:
                analytics['lastCompleted'] = completed_iso

            cursor.execute('''
                INSERT INTO workout_completions (workout_id, duration, completed_at)
                VALUES (?, ?, ?)
            ''', (workout_id, duration, completed_iso))
            cursor.execute('UPDATE workouts SET analytics = ? WHERE id = ?',
                           (json.dumps(analytics), workout_id))

        return analytics

    def _row_to_workout(self, row) -> Dict[str, Any]:
        (workout_id, user_id, name, description, duration, difficulty, created_by, auto_generated,
         exercise_data, calories, muscle_groups, tags, analytics, generated_at, created_at) = row

        exercises = json.loads(exercise_data or '{}')
        return {
            'id': workout_id,
            'userId': user_id,
            'name': name,
            'description': description or '',
            'duration': duration,
            'difficulty': difficulty,
            'warmup': exercises.get('warmup', []),
            'main': exercises.get('main', []),
            'cooldown': exercises.get('cooldown', []),
            'estimatedCalories': calories or 0,
            'targetMuscleGroups': json.loads(muscle_groups or '[]'),
            'tags': json.loads(tags or '[]'),
            'autoGenerated': bool(auto_generated),
            'createdBy': created_by,
            'generatedAt': generated_at,
            'createdAt': created_at,
            'analytics': {**DEFAULT_ANALYTICS, **json.loads(analytics or '{}')}
        }
