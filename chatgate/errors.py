class ChatError(Exception):
    status_code = 500
    message = "Failed to process request"

    def __init__(self, message: str | None = None, detail: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.detail = detail


class ValidationError(ChatError):
    status_code = 400
    message = "Valid message is required"


class InjectionSuspectedError(ChatError):
    # Deliberately vague so callers learn nothing about the detection rules.
    status_code = 400
    message = "Invalid message format. Please rephrase your question."


class RateLimitedError(ChatError):
    status_code = 429
    message = "Rate limit exceeded. Please wait a few minutes before trying again."

    def __init__(self, banned: bool = False):
        super().__init__("Too many requests. Please try again later." if banned else None)
        self.banned = banned


class ConfigurationError(ChatError):
    status_code = 500
    message = "Server configuration error"


class UpstreamError(ChatError):
    status_code = 500
    message = "Failed to get response from assistant"


class StorageError(Exception):
    """Key-value store failure. Callers in the request path must not let it escape."""
