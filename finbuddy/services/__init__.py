"""Services package."""

from finbuddy.services.auth import (
    AuthenticatedUser,
    AuthenticationError,
    SessionVerifier,
)
from finbuddy.services.llm import (
    LLMGateway,
    LLMServiceError,
    PaymentRequiredError,
    RateLimitedError,
)
from finbuddy.services.speech import SpeechService, SpeechServiceError
from finbuddy.services.realtime import (
    ChangeEvent,
    ChangeFeed,
    ChangeType,
    Subscription,
)
from finbuddy.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)

__all__ = [
    # Auth
    "AuthenticatedUser",
    "AuthenticationError",
    "SessionVerifier",
    # LLM gateway
    "LLMGateway",
    "LLMServiceError",
    "PaymentRequiredError",
    "RateLimitedError",
    # Text-to-speech
    "SpeechService",
    "SpeechServiceError",
    # Realtime
    "ChangeEvent",
    "ChangeFeed",
    "ChangeType",
    "Subscription",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
    "NotFoundError",
    "RecordStorageInterface",
    "StorageError",
]
