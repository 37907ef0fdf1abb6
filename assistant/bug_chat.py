"""
Bug chat assistant - orchestrates prompting, parsing and fallback extraction.

Takes a user's message plus recent conversation and returns a reply that may
carry a structured bug draft. Has no database dependencies; the API route
decides whether to store the draft.
"""

import json
import logging
import time
from typing import Any, Literal, Optional

import openai
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from assistant.fallback import extract_bug_fallback
from assistant.llm_client import LLMClient
from assistant.prompt_template import BUG_CHAT_SYSTEM_PROMPT
from models.data_models import BugDraft

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 5
HISTORY_MESSAGE_LIMIT = 1000
MESSAGE_LIMIT = 2000


class ChatMessage(BaseModel):
    """One message of the chat transcript shown in the UI."""

    type: Literal["user", "ai", "system"]
    content: str


class ChatReply(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    should_create_bug: bool
    response: str
    bug_data: Optional[BugDraft] = None
    source: Literal["llm", "fallback"] = "llm"


def parse_chat_response(response_text: str) -> dict[str, Any]:
    """
    Parse the JSON object out of an LLM reply.

    Handles replies wrapped in markdown code fences or surrounded by prose.

    Raises:
        json.JSONDecodeError: If no JSON object can be found
        ValueError: If `shouldCreateBug` or `response` is missing
    """
    text = response_text.strip()
    if text.startswith("```"):
        text = text[3:]
        if text.startswith("json"):
            text = text[4:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()

    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        text = text[start:end + 1]

    parsed = json.loads(text)
    if not isinstance(parsed, dict) or "shouldCreateBug" not in parsed or "response" not in parsed:
        raise ValueError("Invalid response structure: expected shouldCreateBug and response")
    return parsed


def _is_retryable(error: Exception) -> bool:
    if isinstance(error, (openai.RateLimitError, openai.APIConnectionError, openai.APITimeoutError)):
        return True
    return isinstance(error, openai.APIStatusError) and error.status_code >= 500


class BugChatAssistant:
    """
    Converts chat messages into bug drafts with an LLM, falling back to
    keyword extraction when the LLM is unavailable or keeps failing.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        system_prompt: str = BUG_CHAT_SYSTEM_PROMPT,
    ):
        """
        Args:
            llm_client: Configured client, or None to always use the fallback
            max_attempts: LLM attempts before falling back (default 3)
            base_delay: Backoff base in seconds for rate-limit and server errors;
                        doubles on each attempt
            system_prompt: Instructions sent as the system message
        """
        self.llm_client = llm_client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.system_prompt = system_prompt

    def build_messages(self, message: str, history: list[ChatMessage]) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self.system_prompt}]
        for previous in history[-HISTORY_WINDOW:]:
            messages.append({
                "role": "user" if previous.type == "user" else "assistant",
                "content": previous.content[:HISTORY_MESSAGE_LIMIT],
            })
        messages.append({"role": "user", "content": message[:MESSAGE_LIMIT]})
        return messages

    def _fallback(self, message: str) -> ChatReply:
        return ChatReply(source="fallback", **extract_bug_fallback(message))

    def respond(self, message: str, history: Optional[list[ChatMessage]] = None) -> ChatReply:
        """
        Produce a reply (and possibly a bug draft) for one user message.

        Never raises for LLM problems; the keyword fallback answers instead.
        """
        history = history or []
        if not message or not message.strip():
            logger.warning("Empty chat message, using fallback extraction")
            return self._fallback(message)
        if self.llm_client is None:
            logger.info("No LLM client configured, using fallback extraction")
            return self._fallback(message)

        messages = self.build_messages(message, history)

        for attempt in range(1, self.max_attempts + 1):
            try:
                response_text = self.llm_client.chat(messages)
                parsed = parse_chat_response(response_text)

                bug_data = parsed.get("bugData")
                reply = ChatReply(
                    should_create_bug=bool(parsed["shouldCreateBug"]),
                    response=str(parsed["response"]),
                    bug_data=BugDraft.model_validate(bug_data) if bug_data else None,
                    source="llm",
                )
                logger.info(f"Bug chat reply from LLM (attempt {attempt}, create={reply.should_create_bug})")
                return reply

            except (json.JSONDecodeError, ValueError, ValidationError) as e:
                logger.warning(f"Unusable LLM reply (attempt {attempt}/{self.max_attempts}): {e}")

            except Exception as e:
                logger.warning(f"LLM call failed (attempt {attempt}/{self.max_attempts}): {e}")
                if _is_retryable(e) and attempt < self.max_attempts:
                    delay = self.base_delay * (2 ** (attempt - 1))
                    logger.info(f"Retrying in {delay:.1f}s...")
                    time.sleep(delay)

        logger.error(f"All {self.max_attempts} LLM attempts failed, using fallback extraction")
        return self._fallback(message)
