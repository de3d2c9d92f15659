"""
Advisor Agent Base

DESIGN DECISION: Every advisor follows the same pipeline:

1. LOAD: fetch the user's rows (only the tables the advisor declares)
2. AGGREGATE: compute figures locally, deterministically
3. PROMPT: embed those figures and the expected JSON schema in a prompt
4. ASK: one gateway call, no retries
5. VALIDATE: two-stage check of the returned JSON
6. ENRICH: attach the locally computed figures under one key

CRITICAL BOUNDARY:
The model never computes the user's current numbers. Totals, averages
and breakdowns come from step 2 and are returned alongside the model's
analysis so the UI can show real figures next to the advice.

Agents are stateless: nothing survives between calls.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

import structlog
from pydantic import BaseModel

from finbuddy.audit import AuditLogger
from finbuddy.queries import TableQuery, UserData, UserDataLoader
from finbuddy.services.llm import LLMGateway
from finbuddy.services.storage import RecordStorageInterface
from finbuddy.validation import ResponseValidator

logger = structlog.get_logger(__name__)


class AdvisorAgent(ABC):
    """
    One advisor endpoint.

    Subclasses declare:
        route: URL segment under /functions/
        tables: what to load
        system_prompt: role and output schema for the model
        required_keys / non_negative: validation rules
        tool: function declaration, for advisors that use tool calling
        enrichment_key: where local aggregates go in the response
        request_model: pydantic model for the request body, if any
    """

    route: ClassVar[str]
    tables: ClassVar[list[TableQuery]]
    system_prompt: ClassVar[str]
    required_keys: ClassVar[tuple[str, ...]] = ()
    non_negative: ClassVar[tuple[str, ...]] = ()
    tool: ClassVar[Optional[dict]] = None
    enrichment_key: ClassVar[Optional[str]] = None
    request_model: ClassVar[Optional[type[BaseModel]]] = None

    def __init__(
        self,
        storage: RecordStorageInterface,
        gateway: LLMGateway,
        validator: Optional[ResponseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._loader = UserDataLoader(storage)
        self._gateway = gateway
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or ResponseValidator(self._audit)

    # -------------------------------------------------------------------------
    # Steps overridden by each advisor
    # -------------------------------------------------------------------------

    def parse_request(self, payload: Optional[dict]) -> Optional[BaseModel]:
        """Validate the request body. Raises pydantic.ValidationError."""
        if self.request_model is None:
            return None
        return self.request_model.model_validate(payload or {})

    @abstractmethod
    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        """Compute every figure the prompt and enrichment need."""

    @abstractmethod
    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        """User prompt embedding the figures."""

    def build_system_prompt(self, request: Optional[BaseModel]) -> str:
        return self.system_prompt

    def enrichment(self, figures: dict[str, Any]) -> Any:
        """Value stored under `enrichment_key`. Defaults to all figures."""
        return figures

    def short_circuit(self, data: UserData) -> Optional[dict]:
        """Return a response without calling the model, or None to proceed."""
        return None

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def run(self, user_id: str, payload: Optional[dict] = None) -> dict:
        """
        Answer one advisor request for an authenticated user.

        Raises:
            pydantic.ValidationError: Malformed request body
            StorageError: Data could not be loaded
            RateLimitedError, PaymentRequiredError, LLMServiceError: Gateway failures
        """
        request = self.parse_request(payload)
        started = time.monotonic()
        await self._audit.log_advisor_requested(user_id, self.route)

        try:
            data = await self._loader.load(user_id, self.tables)

            early = self.short_circuit(data)
            if early is not None:
                logger.info("advisor_short_circuit", advisor=self.route, user_id=user_id)
                result = early
            else:
                figures = self.aggregate(data, request)
                result = await self._gateway.complete_json(
                    self.build_system_prompt(request),
                    self.render_prompt(figures, request),
                    tool=self.tool,
                )
                await self._validator.validate(
                    self.route,
                    result,
                    required_keys=self.required_keys,
                    non_negative=self.non_negative,
                    user_id=user_id,
                )
                if self.enrichment_key:
                    result = {**result, self.enrichment_key: self.enrichment(figures)}
        except Exception as e:
            logger.error("advisor_failed", advisor=self.route, user_id=user_id, error=str(e))
            await self._audit.log_advisor_failed(user_id, self.route, str(e))
            raise

        elapsed_ms = int((time.monotonic() - started) * 1000)
        await self._audit.log_advisor_completed(user_id, self.route, elapsed_ms)
        return result
