"""
Application Wiring for FinBuddy

This module builds every long-lived component once and hands them to the
two front ends (the HTTP API and the Streamlit app):

1. Storage backend (Google Sheets, or in-memory when configured) with the
   change feed attached
2. Audit logger (persisted to the audit worksheet when Sheets is used)
3. LLM gateway, session verifier, advisors, the chat assistant and
   text-to-speech
4. Per-user stores, created on demand

DESIGN DECISION: Nothing here holds per-request state. Advisors are
shared across requests; stores are per user and per UI session.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from finbuddy.agents import ADVISOR_TYPES, AdvisorAgent, AssistantAgent
from finbuddy.audit import AuditLogger, configure_logging
from finbuddy.config import get_settings
from finbuddy.services.auth import SessionVerifier
from finbuddy.services.llm import LLMGateway
from finbuddy.services.realtime import ChangeFeed
from finbuddy.services.speech import SpeechService
from finbuddy.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryRecordStorage,
    RecordStorageInterface,
)
from finbuddy.stores import (
    AchievementStore,
    BillStore,
    CategoryStore,
    DebtStore,
    ExpenseStore,
    GoalStore,
    IncomeSourceStore,
    InvestmentStore,
    NetWorthStore,
    NotificationCenter,
    Notifier,
    ProfileStore,
    StatsStore,
)
from finbuddy.validation import ResponseValidator

logger = structlog.get_logger(__name__)


@dataclass
class UserStores:
    """Every store for one signed-in user, sharing one notifier."""
    notifier: Notifier
    expenses: ExpenseStore
    categories: CategoryStore
    goals: GoalStore
    bills: BillStore
    net_worth: NetWorthStore
    debts: DebtStore
    investments: InvestmentStore
    profile: ProfileStore
    income_sources: IncomeSourceStore
    achievements: AchievementStore
    stats: StatsStore

    def _all(self) -> list:
        return [
            self.expenses, self.categories, self.goals, self.bills,
            self.net_worth, self.debts, self.investments, self.profile,
            self.income_sources, self.achievements, self.stats,
        ]

    async def fetch_all(self) -> None:
        for store in self._all():
            await store.fetch()

    def start(self) -> None:
        """Follow the change feed."""
        for store in self._all():
            store.start()

    def close(self) -> None:
        for store in self._all():
            store.close()


@dataclass
class AppComponents:
    """Long-lived components shared by every request."""
    storage: RecordStorageInterface
    feed: ChangeFeed
    audit_logger: AuditLogger
    gateway: LLMGateway
    verifier: SessionVerifier
    assistant: AssistantAgent
    advisors: dict[str, AdvisorAgent] = field(default_factory=dict)
    speech: SpeechService = field(default_factory=SpeechService)

    def advisor(self, route: str) -> Optional[AdvisorAgent]:
        return self.advisors.get(route)

    def stores_for(self, user_id: str, notifier: Optional[Notifier] = None) -> UserStores:
        """Fresh stores for one user. Call fetch_all() before reading them."""
        notifier = notifier or NotificationCenter()
        args = (self.storage, user_id, notifier, self.audit_logger)
        return UserStores(
            notifier=notifier,
            expenses=ExpenseStore(*args),
            categories=CategoryStore(*args),
            goals=GoalStore(*args),
            bills=BillStore(*args),
            net_worth=NetWorthStore(*args),
            debts=DebtStore(*args),
            investments=InvestmentStore(*args),
            profile=ProfileStore(*args),
            income_sources=IncomeSourceStore(*args),
            achievements=AchievementStore(*args),
            stats=StatsStore(*args),
        )


def create_storage(
    backend: str,
    feed: ChangeFeed,
) -> tuple[RecordStorageInterface, AuditLogger]:
    """
    Build the record storage and matching audit logger.

    "memory" keeps everything in process with local-only audit logging.
    "sheets" always returns the spreadsheet backend: if the spreadsheet
    cannot be reached at startup the error is logged and every storage
    call raises StorageError until it can, so requests fail instead of
    writing to a throwaway store.
    """
    if backend == "memory":
        return InMemoryRecordStorage(feed), AuditLogger()

    client = GoogleSheetsClient()
    try:
        client.get_spreadsheet()
    except Exception as e:
        logger.error("sheets_storage_unavailable", error=str(e))

    return (
        GoogleSheetsRecordStorage(client, feed),
        AuditLogger(GoogleSheetsAuditStorage(client)),
    )


def create_app_components(
    storage: Optional[RecordStorageInterface] = None,
    gateway: Optional[LLMGateway] = None,
    audit_logger: Optional[AuditLogger] = None,
    verifier: Optional[SessionVerifier] = None,
    speech: Optional[SpeechService] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Any component can be injected (tests pass in-memory storage and a
    fake gateway); the rest are built from settings.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    if storage is None:
        feed = ChangeFeed()
        storage, default_audit = create_storage(settings.app.storage_backend, feed)
    else:
        feed = storage.feed or ChangeFeed()
        default_audit = AuditLogger()

    audit_logger = audit_logger or default_audit
    gateway = gateway or LLMGateway()
    validator = ResponseValidator(audit_logger)

    advisors = {
        advisor_type.route: advisor_type(storage, gateway, validator, audit_logger)
        for advisor_type in ADVISOR_TYPES
    }

    return AppComponents(
        storage=storage,
        feed=feed,
        audit_logger=audit_logger,
        gateway=gateway,
        verifier=verifier or SessionVerifier(),
        assistant=AssistantAgent(storage, gateway, audit_logger),
        advisors=advisors,
        speech=speech or SpeechService(),
    )
