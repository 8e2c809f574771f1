"""Gemini Flash client for classifying legacy taxonomy terms.

Only the JSON response mode is used: callers send a prompt describing the
expected array and parse the text they get back.
"""

import logging
import time

import requests

from config import settings
from wwfm.exceptions import LLMAPIError

logger = logging.getLogger(__name__)

GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
MODEL = "gemini-2.5-flash"

ATTEMPTS = 3
BACKOFF_SECONDS = [2, 5, 10]


def _pause(attempt: int) -> int:
    return BACKOFF_SECONDS[min(attempt, len(BACKOFF_SECONDS) - 1)]


def _request_body(system: str, prompt: str, max_tokens: int, temperature: float) -> dict:
    return {
        "system_instruction": {"parts": [{"text": system}]},
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "maxOutputTokens": max_tokens,
            "temperature": temperature,
            "responseMimeType": "application/json",
        },
    }


def _first_text(body: dict) -> str:
    # KeyError/IndexError here means Gemini returned no candidate text.
    return body["candidates"][0]["content"]["parts"][0]["text"]


def call_fast(
    system: str,
    user_message: str,
    max_tokens: int = 4096,
    temperature: float = 0.0,
    timeout: int = 60,
) -> str:
    """Send one prompt to Gemini Flash and return the generated text.

    429 and 5xx responses, connection errors and malformed bodies are
    retried with backoff; any other HTTP error fails immediately.

    Raises:
        LLMAPIError: No API key is configured, a non-retryable HTTP error
            came back, or every attempt failed.
    """
    api_key = settings.gemini_api_key
    if not api_key:
        raise LLMAPIError("No GEMINI_API_KEY configured")

    endpoint = f"{GEMINI_BASE}/{MODEL}:generateContent"
    body = _request_body(system, user_message, max_tokens, temperature)
    headers = {"content-type": "application/json", "x-goog-api-key": api_key}

    failure = None
    for attempt in range(ATTEMPTS):
        if attempt:
            delay = _pause(attempt - 1)
            logger.warning("Retrying Gemini in %ds (attempt %d/%d): %s",
                           delay, attempt + 1, ATTEMPTS, failure)
            time.sleep(delay)
        try:
            resp = requests.post(endpoint, headers=headers, json=body, timeout=timeout)
        except requests.exceptions.RequestException as e:
            failure = str(e)
            continue

        if resp.status_code == 429 or resp.status_code >= 500:
            failure = f"HTTP {resp.status_code}: {resp.text[:200]}"
            continue
        if not resp.ok:
            raise LLMAPIError(f"Gemini request rejected with HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return _first_text(resp.json())
        except (KeyError, IndexError, ValueError) as e:
            failure = f"unexpected response body: {e}"

    raise LLMAPIError(f"Gemini gave up after {ATTEMPTS} attempts: {failure}")
