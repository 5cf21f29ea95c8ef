from typing import Dict, List, Optional

import openai
from openai import OpenAI

from errors import ModelUnavailable


class AIService:
    """Thin wrapper over the chat completions API.

    Every failure of the backend (missing key, timeout, non-2xx, empty
    answer) comes out as ModelUnavailable.
    """

    system_prompts = {
        'workout_generation': "You are a certified personal trainer who writes safe, well-structured workouts. You reply with JSON only when asked for JSON.",
        'general_chat': "You are a knowledgeable, motivational AI fitness trainer. Answer fitness questions helpfully and concisely.",
        'exercise_form': "You are a strength coach who explains exercise technique clearly and safely."
    }

    def __init__(self, api_key: str = None, model: str = 'gpt-4o-mini', timeout: float = 10.0,
                 client: Optional[OpenAI] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            try:
                # No automatic retries: a retry is the user's call
                self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
            except openai.OpenAIError as e:
                raise ModelUnavailable(f"Model client unavailable: {e}") from e
        return self._client

    def _complete(self, messages: List[Dict[str, str]], temperature: float, max_tokens: int) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.timeout
            )
        except openai.APITimeoutError as e:
            raise ModelUnavailable(f"Model timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            raise ModelUnavailable(f"Model request failed: {e}") from e

        if not response.choices:
            raise ModelUnavailable('Model returned no choices')

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ModelUnavailable('Model returned an empty reply')
        return content

    def generate_text(self, prompt: str) -> str:
        """One-shot generation used for structured workouts"""
        messages = [
            {"role": "system", "content": self.system_prompts['workout_generation']},
            {"role": "user", "content": prompt}
        ]
        return self._complete(messages, temperature=0.7, max_tokens=2000)

    def chat(self, message: str, history: List[Dict[str, str]] = None, purpose: str = 'general_chat') -> str:
        """Conversational reply; history is a list of {role, content} dicts"""
        messages = [{"role": "system", "content": self.system_prompts.get(purpose, self.system_prompts['general_chat'])}]

        if history:
            for turn in history[-6:]:  # Last 3 exchanges for context
                if turn.get('role') in ('user', 'assistant'):
                    messages.append({"role": turn['role'], "content": turn['content']})

        messages.append({"role": "user", "content": message})
        return self._complete(messages, temperature=0.7, max_tokens=1000)
