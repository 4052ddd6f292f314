"""
Client for an OpenAI-compatible chat completions endpoint.

The endpoint is optional: with LLM_API_URL unset, or when a call fails,
callers get the heuristic answer from analysis.canned_reply instead.
"""
import logging
import os

import requests
from django.conf import settings

from .analysis import canned_reply

logger = logging.getLogger(__name__)

HEURISTIC_PROVIDER = 'heuristic'

SYSTEM_PROMPT = (
    'You are a procurement assistant for a tender management platform. '
    'Answer questions about tenders, bids, EMDs, contracts and payments concisely.'
)


class LLMError(Exception):
    pass


class LLMClient:
    def __init__(self, api_url=None, api_key=None, model=None, timeout=None):
        self.api_url = api_url if api_url is not None else getattr(settings, 'LLM_API_URL', os.getenv('LLM_API_URL', ''))
        self.api_key = api_key if api_key is not None else getattr(settings, 'LLM_API_KEY', os.getenv('LLM_API_KEY', ''))
        self.model = model or getattr(settings, 'LLM_MODEL', os.getenv('LLM_MODEL', 'gpt-4o-mini'))
        self.timeout = timeout or int(getattr(settings, 'LLM_TIMEOUT', os.getenv('LLM_TIMEOUT', 30)))

    @property
    def enabled(self):
        return bool(self.api_url)

    @property
    def provider(self):
        return self.model if self.enabled else HEURISTIC_PROVIDER

    def complete(self, messages, temperature=0.2):
        """POST a chat completion and return the assistant's text"""
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'
        payload = {'model': self.model, 'messages': messages, 'temperature': temperature}
        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
            return data['choices'][0]['message']['content'].strip()
        except requests.exceptions.RequestException as e:
            raise LLMError(f'LLM request failed: {str(e)}')
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(f'Unexpected LLM response: {str(e)}')

    def chat(self, message, context=None, history=None):
        reply = canned_reply(message)
        if not self.enabled:
            reply['provider'] = HEURISTIC_PROVIDER
            return reply

        messages = [{'role': 'system', 'content': SYSTEM_PROMPT}]
        if context:
            messages.append({'role': 'system', 'content': f'Context: {context}'})
        for turn in history or []:
            if turn.get('role') in ('user', 'assistant') and turn.get('content'):
                messages.append({'role': turn['role'], 'content': str(turn['content'])})
        messages.append({'role': 'user', 'content': message})

        try:
            reply['message'] = self.complete(messages)
            reply['provider'] = self.model
        except LLMError as e:
            logger.warning(f"Falling back to heuristic chat reply: {str(e)}")
            reply['provider'] = HEURISTIC_PROVIDER
        return reply

    def providers(self):
        available = [{
            'name': HEURISTIC_PROVIDER,
            'models': ['rules-v1'],
            'enabled': True,
            'description': 'Regex and keyword heuristics; no external calls',
        }]
        if self.enabled:
            available.insert(0, {
                'name': 'llm',
                'models': [self.model],
                'enabled': True,
                'endpoint': self.api_url,
            })
        return {'default': self.provider, 'providers': available}
