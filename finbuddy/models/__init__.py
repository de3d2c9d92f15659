"""
Data Models Package

This package contains all Pydantic models used in FinBuddy.
All data flowing through the system must conform to these schemas.
"""

from finbuddy.models.records import (
    DEFAULT_CATEGORIES,
    MONTHLY_FACTORS,
    RECORD_TYPES,
    Achievement,
    Asset,
    Bill,
    BillFrequency,
    CategoryOption,
    Expense,
    ExpenseCategory,
    Goal,
    IncomeFrequency,
    IncomeSource,
    Investment,
    Liability,
    Profile,
    Record,
    Table,
    TaxDeduction,
    UserStats,
    utcnow,
)
from finbuddy.models.advisor import (
    ChatMessage,
    ChatRequest,
    IncomeForecastRequest,
    ValidationIssue,
    ValidationResult,
    WhatIfScenario,
)
from finbuddy.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "DEFAULT_CATEGORIES",
    "MONTHLY_FACTORS",
    "RECORD_TYPES",
    "Achievement",
    "Asset",
    "Bill",
    "BillFrequency",
    "CategoryOption",
    "Expense",
    "ExpenseCategory",
    "Goal",
    "IncomeFrequency",
    "IncomeSource",
    "Investment",
    "Liability",
    "Profile",
    "Record",
    "Table",
    "TaxDeduction",
    "UserStats",
    "utcnow",
    # Advisor payloads
    "ChatMessage",
    "ChatRequest",
    "IncomeForecastRequest",
    "ValidationIssue",
    "ValidationResult",
    "WhatIfScenario",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
