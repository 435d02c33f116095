from dataclasses import dataclass
from typing import Any

from .analytics import AnalyticsRecorder
from .cache import CacheEntry, ResponseCache
from .config import Settings
from .content_filter import ValidationResult, validate
from .errors import (
    ConfigurationError,
    InjectionSuspectedError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)
from .hardening import IPGate, log_event
from .reply_format import clean_reply


@dataclass(frozen=True)
class ChatReply:
    reply: str
    thread_id: str
    scroll_to_form: bool
    cached: bool


class ChatPipeline:
    """Gate, screen, record, then answer from cache or the assistant."""

    def __init__(
        self,
        settings: Settings,
        gate: IPGate,
        cache: ResponseCache,
        recorder: AnalyticsRecorder,
        assistant: Any,
    ):
        self.settings = settings
        self.gate = gate
        self.cache = cache
        self.recorder = recorder
        self.assistant = assistant

    def _admit(self, client_key: str) -> None:
        if self.settings.rate_limiting_disabled:
            return
        decision = self.gate.check_and_admit(client_key)
        if decision.allowed:
            return
        if decision.reason == "banned":
            log_event("banned_client_rejected", client=client_key)
            raise RateLimitedError(banned=True)
        log_event("rate_limited", client=client_key)
        raise RateLimitedError()

    def _screen(self, message: Any, client_key: str) -> str:
        result = validate(message, self.settings.max_message_length)
        if result is ValidationResult.MALFORMED:
            raise ValidationError()
        if result is ValidationResult.TOO_LONG:
            raise ValidationError(
                f"Message too long. Please keep your question under {self.settings.max_message_length} characters."
            )
        if result is ValidationResult.INJECTION_SUSPECTED:
            log_event("message_rejected", reason="prompt_injection", client=client_key)
            raise InjectionSuspectedError()
        return message

    async def handle(self, message: Any, thread_id: str | None, client_key: str) -> ChatReply:
        self._admit(client_key)
        if not self.settings.openai_api_key:
            log_event("chat_error", reason="missing_openai_api_key")
            raise ConfigurationError()
        text = self._screen(message, client_key)

        await self.recorder.record(text)

        cached = self.cache.lookup(text)
        if cached is not None:
            return ChatReply(
                reply=cached.reply,
                thread_id=cached.thread_id,
                scroll_to_form=cached.scroll_to_form,
                cached=True,
            )

        assistant_id = await self.assistant.get_or_create_assistant_id()
        if not thread_id:
            thread_id = await self.assistant.create_session()
        await self.assistant.post_user_turn(thread_id, text)
        run = await self.assistant.run_to_completion(thread_id, assistant_id)
        if run.status != "completed":
            log_event("assistant_run_failed", status=run.status, threadId=thread_id)
            raise UpstreamError(detail=f"run status {run.status}")

        reply, scroll_to_form = clean_reply(run.reply_text)
        self.cache.store(text, CacheEntry(reply=reply, thread_id=thread_id, scroll_to_form=scroll_to_form))
        return ChatReply(reply=reply, thread_id=thread_id, scroll_to_form=scroll_to_form, cached=False)
