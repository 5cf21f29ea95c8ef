from typing import Dict, List, Optional

from models import Database
from schemas import ConversationMessage


class ConversationStore:
    """Server-side trainer transcripts, keyed by an opaque conversation id"""

    def __init__(self, db: Database, max_messages: int = 100):
        self.db = db
        self.max_messages = max_messages
        self.init_tables()

    def init_tables(self):
        with self.db.connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS conversations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            # Append-only transcript
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS conversation_messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id INTEGER NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    FOREIGN KEY (conversation_id) REFERENCES conversations (id) ON DELETE CASCADE
                )
            ''')

    def start_conversation(self, user_id=None) -> int:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('INSERT INTO conversations (user_id) VALUES (?)',
                           (str(user_id) if user_id is not None else None,))
            conversation_id = cursor.lastrowid

        print(f"🆕 Started conversation {conversation_id} for user {user_id}")
        return conversation_id

    def exists(self, conversation_id: int) -> bool:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT 1 FROM conversations WHERE id = ?', (conversation_id,))
            found = cursor.fetchone() is not None
        return found

    def resolve(self, user_id=None, conversation_id: Optional[int] = None) -> int:
        """Return conversation_id when it exists, otherwise start a new one"""
        if conversation_id is not None and self.exists(conversation_id):
            return conversation_id
        return self.start_conversation(user_id)

    def latest_conversation_id(self, user_id=None) -> Optional[int]:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            if user_id is None:
                cursor.execute('SELECT id FROM conversations ORDER BY id DESC LIMIT 1')
            else:
                cursor.execute('SELECT id FROM conversations WHERE user_id = ? ORDER BY id DESC LIMIT 1',
                               (str(user_id),))
            row = cursor.fetchone()
        return row[0] if row else None

    def append_message(self, conversation_id: int, message: ConversationMessage) -> ConversationMessage:
        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO conversation_messages (conversation_id, role, content, timestamp)
                VALUES (?, ?, ?, ?)
            ''', (conversation_id, message.role, message.content, message.timestamp))

            # Keep only the newest messages to prevent unbounded growth
            cursor.execute('''
                DELETE FROM conversation_messages
                WHERE conversation_id = ? AND id NOT IN (
                    SELECT id FROM conversation_messages
                    WHERE conversation_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                )
            ''', (conversation_id, conversation_id, self.max_messages))

        return message

    def get_messages(self, conversation_id: Optional[int]) -> List[ConversationMessage]:
        if conversation_id is None:
            return []

        with self.db.connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT role, content, timestamp
                FROM conversation_messages
                WHERE conversation_id = ?
                ORDER BY id ASC
            ''', (conversation_id,))
            rows = cursor.fetchall()

        return [ConversationMessage(role=role, content=content, timestamp=timestamp)
                for role, content, timestamp in rows]

    def get_recent_window(self, conversation_id: int, max_turns: int = 3) -> List[Dict[str, str]]:
        """Last few user/assistant messages as chat history for the model"""
        messages = [m for m in self.get_messages(conversation_id) if m.role in ('user', 'assistant')]
        return [{'role': m.role, 'content': m.content} for m in messages[-max_turns * 2:]]
