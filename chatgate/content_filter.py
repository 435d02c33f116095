import enum
import re
from typing import Any

from .hardening import log_event


class ValidationResult(enum.Enum):
    OK = "ok"
    TOO_LONG = "too_long"
    INJECTION_SUSPECTED = "injection_suspected"
    MALFORMED = "malformed"


# Evaluated top to bottom; the first match blocks the message.
INJECTION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ignore\s+(all\s+)?(previous|prior|above)\s+(instructions|prompts|rules|directions)", re.IGNORECASE),
    re.compile(r"disregard\s+(previous|prior|above)\s+(instructions|prompts|rules)", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all)\s+(you\s+)?(were\s+told|learned|instructions)", re.IGNORECASE),
    re.compile(r"new\s+(instructions|rules|prompt):", re.IGNORECASE),
    re.compile(r"system\s*:\s*you\s+are\s+now", re.IGNORECASE),
    re.compile(r"your\s+new\s+(role|instructions|task)\s+is", re.IGNORECASE),
    re.compile(r"\[SYSTEM\]", re.IGNORECASE),
    re.compile(r"<\|im_start\|>", re.IGNORECASE),
    re.compile(r"pretend\s+(you're|you\s+are|to\s+be)\s+(a\s+)?(different|new)", re.IGNORECASE),
    re.compile(r"act\s+as\s+if\s+you", re.IGNORECASE),
    re.compile(r"reveal\s+your\s+(instructions|prompt|system)", re.IGNORECASE),
    re.compile(r"what\s+(are|were)\s+your\s+(original\s+)?(instructions|prompts)", re.IGNORECASE),
]

_LOG_PREVIEW_CHARS = 100


def detect_prompt_injection(message: str) -> bool:
    for pattern in INJECTION_PATTERNS:
        if pattern.search(message):
            log_event("prompt_injection_blocked", preview=message[:_LOG_PREVIEW_CHARS], pattern=pattern.pattern)
            return True
    return False


def validate(message: Any, max_length: int = 200) -> ValidationResult:
    if not isinstance(message, str) or not message:
        return ValidationResult.MALFORMED
    if len(message) > max_length:
        log_event("message_rejected", reason="too_long", length=len(message))
        return ValidationResult.TOO_LONG
    if detect_prompt_injection(message):
        return ValidationResult.INJECTION_SUSPECTED
    return ValidationResult.OK
