"""
Two-Stage Validation of Advisor Responses

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE VALIDATION:
- The model answered with a JSON object
- Every top-level key the UI renders is present
- A failure here is an error: the response cannot be shown

STAGE 2 - SANITY VALIDATION:
- Numeric fields that can never be negative (amounts, percentages)
- A failure here is a warning: the response is still returned

IMPORTANT: Validation NEVER fixes the model's output.
It reports what is wrong; the advisor decides whether to fail.
"""

from typing import Any, Iterable, Optional

import structlog

from finbuddy.audit import AuditLogger
from finbuddy.models.advisor import ValidationIssue, ValidationResult
from finbuddy.services.llm import LLMServiceError

logger = structlog.get_logger(__name__)

_MISSING = object()


def lookup(payload: Any, path: str) -> Any:
    """Resolve a dotted path ("budgetBreakdown.needs.amount") or _MISSING."""
    current = payload
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


class ResponseValidator:
    """
    Validates the JSON an advisor got back from the model.

    Stage 1 can reject a response; stage 2 only annotates it.
    """

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit = audit_logger

    def _validate_shape(
        self,
        payload: Any,
        required_keys: Iterable[str],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Shape validation.

        Returns: (is_valid, list_of_issues)
        """
        if not isinstance(payload, dict):
            return False, [ValidationIssue(
                field="$",
                issue_type="wrong_type",
                message=f"Expected a JSON object, got {type(payload).__name__}",
                severity="error",
            )]

        issues = [
            ValidationIssue(
                field=key,
                issue_type="missing",
                message=f"Required key '{key}' is missing",
                severity="error",
            )
            for key in required_keys
            if key not in payload
        ]
        return not issues, issues

    def _validate_sanity(
        self,
        payload: dict,
        non_negative: Iterable[str],
    ) -> list[ValidationIssue]:
        """Stage 2: numbers that must not be negative."""
        issues = []
        for path in non_negative:
            value = lookup(payload, path)
            if value is _MISSING or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)) and value < 0:
                issues.append(ValidationIssue(
                    field=path,
                    issue_type="negative_value",
                    message=f"'{path}' is negative ({value})",
                    severity="warning",
                ))
        return issues

    def inspect(
        self,
        advisor: str,
        payload: Any,
        required_keys: Iterable[str] = (),
        non_negative: Iterable[str] = (),
    ) -> ValidationResult:
        """Run both stages without side effects. Stage 2 is skipped if stage 1 fails."""
        shape_valid, issues = self._validate_shape(payload, required_keys)
        if shape_valid:
            issues.extend(self._validate_sanity(payload, non_negative))
        return ValidationResult(advisor=advisor, shape_valid=shape_valid, issues=issues)

    async def validate(
        self,
        advisor: str,
        payload: Any,
        required_keys: Iterable[str] = (),
        non_negative: Iterable[str] = (),
        user_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate and act on the result.

        Warnings are logged. Shape errors are audited and raised.

        Raises:
            LLMServiceError: If the response fails shape validation
        """
        result = self.inspect(advisor, payload, required_keys, non_negative)

        for issue in result.warnings:
            logger.warning(
                "advisor_response_warning",
                advisor=advisor,
                field=issue.field,
                message=issue.message,
            )

        if not result.is_valid:
            logger.error(
                "advisor_response_invalid",
                advisor=advisor,
                errors=[i.message for i in result.errors],
            )
            if self._audit:
                await self._audit.log_validation_failed(
                    user_id,
                    advisor,
                    [i.model_dump() for i in result.errors],
                )
            raise LLMServiceError("AI did not return structured data")

        return result
