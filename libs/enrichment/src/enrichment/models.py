"""Pydantic models for enrichment requests, provider payloads and responses."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import to_jsonable_python
from ulid import ULID

from .exceptions import EnrichmentValidationError

REQUEST_ID_PREFIX = "req_"


def generate_request_id() -> str:
    """Generate a time-sortable request identifier (e.g. 'req_01ARZ3NDEKTSV4RRFFQ69G5FAV')."""
    return f"{REQUEST_ID_PREFIX}{ULID()}"


class MergePolicy(str, Enum):
    """How provider data and caller-supplied source data are combined."""

    ENHANCE = "ENHANCE"
    MERGE = "MERGE"
    REPLACE = "REPLACE"
    RAW = "RAW"


class EnrichmentRequest(BaseModel):
    """Immutable request to enrich a source object with provider data."""

    model_config = ConfigDict(frozen=True)

    enrichment_type: str = Field(
        ..., min_length=1, description="Type of enrichment to perform (e.g. 'company-profile')."
    )
    policy: MergePolicy = Field(..., description="Merge policy applied to provider data.")
    source: Any | None = Field(
        default=None,
        description="Source object to enrich (optional for REPLACE/RAW).",
    )
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="Provider-specific parameters."
    )
    tenant_id: str | None = Field(
        default=None,
        description="Tenant identifier; empty or None means no tenant isolation.",
    )
    request_id: str = Field(
        default_factory=generate_request_id,
        description="Request ID for tracing and correlation.",
    )
    timeout_seconds: float | None = Field(
        default=None, gt=0, description="Per-request timeout overriding the configured default."
    )
    bypass_cache: bool = Field(
        default=False, description="Skip cache lookup and cache write for this request."
    )
    include_raw_response: bool = Field(
        default=False, description="Attach the unmapped provider payload to the response."
    )
    initiator: str | None = Field(default=None, description="Initiator of the request.")
    metadata: dict[str, str] = Field(
        default_factory=dict, description="Additional caller metadata."
    )

    @field_validator("enrichment_type")
    @classmethod
    def validate_enrichment_type(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Enrichment type is required")
        return v

    def require_param(self, name: str) -> Any:
        """
        Return a required provider parameter.

        Raises:
            EnrichmentValidationError: If the parameter is missing or None.
        """
        value = self.parameters.get(name)
        if value is None:
            raise EnrichmentValidationError(
                f"Required parameter '{name}' is missing for enrichment type '{self.enrichment_type}'"
            )
        return value


class ProviderPayload(BaseModel):
    """Optional envelope a provider client can return to report cost and confidence."""

    data: Any = None
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    cost: float | None = Field(default=None, ge=0.0)
    cost_currency: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class EnrichmentResponse(BaseModel):
    """Immutable outcome of one enrichment request."""

    model_config = ConfigDict(frozen=True)

    success: bool
    enriched_data: Any = None
    fields_enriched: int = Field(default=0, ge=0)
    provider_name: str
    enrichment_type: str
    policy: MergePolicy | None = None
    message: str = ""
    error: str | None = None
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    cost: float | None = Field(default=None, ge=0.0)
    cost_currency: str | None = None
    metadata: dict[str, str] = Field(
        default_factory=dict, description="Caller metadata merged with provider-reported metadata."
    )
    provider_metadata: dict[str, str] = Field(
        default_factory=dict, description="Metadata reported by the provider for this result."
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    request_id: str | None = None
    raw_response: Any = None

    @classmethod
    def succeeded(
        cls,
        request: EnrichmentRequest,
        provider_name: str,
        enriched_data: Any,
        fields_enriched: int = 0,
        *,
        message: str | None = None,
        raw_response: Any = None,
        confidence_score: float | None = None,
        cost: float | None = None,
        cost_currency: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> EnrichmentResponse:
        """Build a success response; data is stored in JSON-compatible form."""
        return cls(
            success=True,
            enriched_data=to_jsonable_python(enriched_data),
            fields_enriched=fields_enriched,
            provider_name=provider_name,
            enrichment_type=request.enrichment_type,
            policy=request.policy,
            message=message or f"{request.enrichment_type} enrichment completed successfully",
            confidence_score=confidence_score,
            cost=cost,
            cost_currency=cost_currency,
            metadata={**request.metadata, **(metadata or {})},
            provider_metadata=dict(metadata or {}),
            request_id=request.request_id,
            raw_response=to_jsonable_python(raw_response) if raw_response is not None else None,
        )

    @classmethod
    def failed(
        cls,
        request: EnrichmentRequest,
        provider_name: str,
        error: str,
        message: str | None = None,
    ) -> EnrichmentResponse:
        return cls(
            success=False,
            provider_name=provider_name,
            enrichment_type=request.enrichment_type,
            policy=request.policy,
            message=message or f"Enrichment failed: {error}",
            error=error,
            metadata=dict(request.metadata),
            request_id=request.request_id,
        )

    def for_request(
        self, request: EnrichmentRequest, include_raw: bool | None = None
    ) -> EnrichmentResponse:
        """
        Stamp a shared response for one requester.

        The copy carries the requester's `request_id` and metadata (merged with
        the provider metadata), and keeps `raw_response` only when requested.

        Parameters:
            request (EnrichmentRequest): Request the copy answers.
            include_raw (bool | None): Keep the raw payload; defaults to `request.include_raw_response`.
        """
        if include_raw is None:
            include_raw = request.include_raw_response
        return self.model_copy(
            update={
                "request_id": request.request_id,
                "metadata": {**request.metadata, **self.provider_metadata},
                "raw_response": self.raw_response if include_raw else None,
            }
        )

    def for_cache(self) -> EnrichmentResponse:
        """Return the requester-independent copy stored in the result cache."""
        return self.model_copy(
            update={"request_id": None, "metadata": dict(self.provider_metadata)}
        )
