"""LLM gateway package."""

from finbuddy.services.llm.gateway import (
    LLMGateway,
    LLMServiceError,
    PaymentRequiredError,
    RateLimitedError,
    extract_json,
    stream_text,
)

__all__ = [
    "LLMGateway",
    "LLMServiceError",
    "PaymentRequiredError",
    "RateLimitedError",
    "extract_json",
    "stream_text",
]
