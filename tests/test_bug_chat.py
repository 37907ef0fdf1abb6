"""
Tests for the AI bug chat components.

Keeping tests simple and focused on basic functionality.
"""

import json
from unittest.mock import Mock, patch

import httpx
import openai
import pytest

from assistant.bug_chat import BugChatAssistant, ChatMessage, parse_chat_response
from assistant.fallback import extract_bug_fallback, is_question
from assistant.llm_client import ANTHROPIC_BASE_URL, LLMClient
from assistant.prompt_template import (
    BUG_CHAT_SYSTEM_PROMPT,
    FALLBACK_CREATED_RESPONSE,
    FALLBACK_QUESTION_RESPONSE,
)

VALID_REPLY = json.dumps({
    "shouldCreateBug": True,
    "response": "Bug report created successfully! Severity: high",
    "bugData": {
        "title": "Checkout button unresponsive",
        "description": "Clicking checkout does nothing",
        "severity": "high",
        "priority": "urgent",
        "browser": "firefox",
        "steps_to_reproduce": ["Add item", "Click checkout"],
        "tags": "checkout, ui",
    },
})


def rate_limit_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.RateLimitError("rate limited", response=httpx.Response(429, request=request), body=None)


def auth_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.AuthenticationError("bad key", response=httpx.Response(401, request=request), body=None)


class TestParseChatResponse:
    def test_plain_json(self):
        assert parse_chat_response(VALID_REPLY)["shouldCreateBug"] is True

    def test_code_fenced_json(self):
        parsed = parse_chat_response(f"```json\n{VALID_REPLY}\n```")
        assert parsed["bugData"]["severity"] == "high"

    def test_json_surrounded_by_prose(self):
        parsed = parse_chat_response(f"Sure! Here it is:\n{VALID_REPLY}\nLet me know.")
        assert parsed["response"].startswith("Bug report created")

    def test_missing_required_keys(self):
        with pytest.raises(ValueError):
            parse_chat_response('{"response": "hi"}')

    def test_not_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_chat_response("I could not understand that")


class TestFallbackExtraction:
    def test_question_detected(self):
        assert is_question("How do I report a bug?") is False  # mentions "bug"
        assert is_question("How does this tool work?")
        assert not is_question("How does this tool work")  # no question mark

    def test_question_reply(self):
        result = extract_bug_fallback("What can you do?")
        assert result["should_create_bug"] is False
        assert result["response"] == FALLBACK_QUESTION_RESPONSE
        assert result["bug_data"] is None

    def test_extracts_context(self):
        result = extract_bug_fallback(
            "Critical: the app crashes on my android phone at https://shop.example.com/cart in firefox"
        )
        draft = result["bug_data"]

        assert result["should_create_bug"] is True
        assert result["response"] == FALLBACK_CREATED_RESPONSE
        assert draft.title == "Application crash"
        assert draft.severity == "high"
        assert draft.priority == "urgent"
        assert draft.browser == "firefox"
        assert draft.os == "android"
        assert draft.device == "mobile"
        assert draft.url == "https://shop.example.com/cart"
        assert draft.expected_result == "Application should work without crashing"
        assert draft.actual_result == "Application crashes"

    def test_login_topic(self):
        draft = extract_bug_fallback("Login is not working for SSO users")["bug_data"]
        assert draft.title == "Login functionality issue"
        assert draft.actual_result == "Login fails"

    def test_generic_message_defaults(self):
        draft = extract_bug_fallback("Header misaligned")["bug_data"]
        assert draft.title == "Issue: Header misaligned"
        assert draft.severity == "medium"
        assert draft.priority == "medium"
        assert draft.browser == "chrome"
        assert draft.device == "desktop"
        assert draft.os == "unknown"
        assert draft.actual_result == "Header misaligned"
        assert draft.steps_to_reproduce.startswith("1. User reported: Header misaligned")

    def test_cosmetic_issue_is_low_severity(self):
        draft = extract_bug_fallback("Small cosmetic glitch in footer, low priority")["bug_data"]
        assert draft.severity == "low"
        assert draft.priority == "low"


class TestLLMClient:
    def test_rejects_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            LLMClient(provider="cohere", model="x", api_key="key")

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            LLMClient(provider="openai", model="gpt-4o", api_key="")

    @patch("assistant.llm_client.OpenAI")
    def test_anthropic_uses_compatible_endpoint(self, mock_openai):
        LLMClient(provider="anthropic", model="claude-sonnet-4-5", api_key="sk-ant")
        mock_openai.assert_called_once_with(api_key="sk-ant", base_url=ANTHROPIC_BASE_URL)

    @patch("assistant.llm_client.OpenAI")
    def test_chat_returns_text(self, mock_openai):
        completion = Mock()
        completion.choices = [Mock(message=Mock(content="hello"))]
        mock_openai.return_value.chat.completions.create.return_value = completion

        client = LLMClient(provider="openai", model="gpt-4o", api_key="sk-test")
        messages = [{"role": "user", "content": "hi"}]

        assert client.chat(messages) == "hello"
        kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"] == messages

    @patch("assistant.llm_client.OpenAI")
    def test_empty_reply_raises(self, mock_openai):
        completion = Mock()
        completion.choices = [Mock(message=Mock(content=""))]
        completion.usage = None
        mock_openai.return_value.chat.completions.create.return_value = completion

        client = LLMClient(provider="openai", model="gpt-4o", api_key="sk-test")
        with pytest.raises(ValueError, match="Empty response"):
            client.chat([{"role": "user", "content": "hi"}])


class TestBugChatAssistant:
    def test_llm_reply_parsed_into_draft(self):
        llm = Mock()
        llm.chat.return_value = VALID_REPLY

        reply = BugChatAssistant(llm_client=llm).respond("Checkout is broken")

        assert reply.source == "llm"
        assert reply.should_create_bug is True
        assert reply.bug_data.title == "Checkout button unresponsive"
        assert reply.bug_data.priority == "urgent"
        assert reply.bug_data.steps_to_reproduce == "Add item\nClick checkout"
        assert reply.bug_data.tags == ["checkout", "ui"]

    def test_messages_include_recent_history(self):
        llm = Mock()
        llm.chat.return_value = VALID_REPLY
        history = [ChatMessage(type="user" if i % 2 else "ai", content=f"m{i}" * 600) for i in range(8)]

        BugChatAssistant(llm_client=llm).respond("x" * 3000, history)

        messages = llm.chat.call_args.args[0]
        assert messages[0] == {"role": "system", "content": BUG_CHAT_SYSTEM_PROMPT}
        # Only the last five history messages, each truncated
        assert len(messages) == 1 + 5 + 1
        assert messages[1]["content"].startswith("m3")
        assert messages[1]["role"] == "user"
        assert messages[2]["role"] == "assistant"
        assert all(len(message["content"]) <= 1000 for message in messages[1:6])
        assert messages[-1] == {"role": "user", "content": "x" * 2000}

    def test_no_client_uses_fallback(self):
        reply = BugChatAssistant(llm_client=None).respond("The page crashes")
        assert reply.source == "fallback"
        assert reply.should_create_bug is True
        assert reply.bug_data.title == "Application crash"

    @patch("assistant.bug_chat.time.sleep")
    def test_unparseable_replies_fall_back_after_retries(self, mock_sleep):
        llm = Mock()
        llm.chat.return_value = "not json at all"

        reply = BugChatAssistant(llm_client=llm, max_attempts=3).respond("Search is slow")

        assert llm.chat.call_count == 3
        mock_sleep.assert_not_called()
        assert reply.source == "fallback"
        assert reply.bug_data.title == "Performance issue"

    @patch("assistant.bug_chat.time.sleep")
    def test_rate_limit_backs_off_then_succeeds(self, mock_sleep):
        llm = Mock()
        llm.chat.side_effect = [rate_limit_error(), rate_limit_error(), VALID_REPLY]

        reply = BugChatAssistant(llm_client=llm, base_delay=1.0).respond("Checkout is broken")

        assert reply.source == "llm"
        assert [call.args[0] for call in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("assistant.bug_chat.time.sleep")
    def test_non_retryable_error_retries_without_delay(self, mock_sleep):
        llm = Mock()
        llm.chat.side_effect = auth_error()

        reply = BugChatAssistant(llm_client=llm, max_attempts=2).respond("Upload fails")

        assert llm.chat.call_count == 2
        mock_sleep.assert_not_called()
        assert reply.source == "fallback"

    def test_reply_without_bug_data(self):
        llm = Mock()
        llm.chat.return_value = json.dumps({"shouldCreateBug": False, "response": "Could you describe the bug?"})

        reply = BugChatAssistant(llm_client=llm).respond("hello")

        assert reply.should_create_bug is False
        assert reply.bug_data is None
        assert reply.source == "llm"
