"""
Advisor Models

Request payloads accepted by the advisor endpoints, and the result shape
of AI response validation.

DESIGN DECISION: The advisors return whatever JSON the model produced
(plus locally computed enrichment), so there is no response model per
advisor. We only validate the shape we depend on.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from finbuddy.models.records import utcnow


# =============================================================================
# REQUEST PAYLOADS
# =============================================================================

class WhatIfScenario(BaseModel):
    """Hypothetical change applied to the income baseline."""

    additional_income: float = Field(
        default=0.0,
        alias="additionalIncome",
        description="Extra monthly income to assume"
    )
    income_growth_percent: float = Field(
        default=0.0,
        alias="incomeGrowthPercent",
        description="Monthly growth rate to assume, in percent"
    )

    model_config = {"populate_by_name": True}


class IncomeForecastRequest(BaseModel):
    """Body of POST /functions/income-forecast."""

    timeframe: Literal[1, 3, 6] = Field(
        default=3,
        description="Months ahead to forecast"
    )
    what_if_scenario: Optional[WhatIfScenario] = Field(
        default=None,
        alias="whatIfScenario"
    )

    model_config = {"populate_by_name": True}


class ChatMessage(BaseModel):
    """One turn of the assistant conversation."""

    role: Literal["user", "assistant", "system"]
    content: str = Field(..., max_length=8000)


class ChatRequest(BaseModel):
    """Body of POST /functions/finbuddy-chat."""

    messages: list[ChatMessage] = Field(
        ...,
        min_length=1,
        description="Conversation so far, oldest first"
    )


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'wrong_type', 'negative_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Shape validation (is an object, required keys present)
    Stage 2: Sanity validation (numbers that must not be negative)
    """

    advisor: str = Field(
        ...,
        description="Advisor whose response was validated"
    )
    validated_at: datetime = Field(default_factory=utcnow)

    shape_valid: bool = Field(
        ...,
        description="Did shape validation pass?"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return self.shape_valid and not self.errors
