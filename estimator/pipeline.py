"""
Estimate Orchestration
======================
Runs one estimate request through the stages, all within the request:

    RECEIVED -> MATCHED_FLAT_RATE (optional) -> TEXT_GENERATION_CALLED
      -> NORMALIZED -> PRICED -> PERSISTED -> RESPONDED

Terminal failures: TEXT_GENERATION_FAILED, PERSISTENCE_FAILED. Nothing is
retried after a persistence failure and nothing needs rolling back (writes are
single-row inserts).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config_loader import EstimatorSettings
from estimator import flat_rate as flat_rates
from estimator.flat_rate import FlatRateMatch
from estimator.models import PricedEstimate
from estimator.normalizer import normalize
from estimator.pricing import price
from estimator.prompts import SYSTEM_PROMPT, build_estimate_prompt
from services.llm_client import LLMClient, LLMError, LLMResponseError, LLMTimeoutError
from stores.job_store import JobStore, StoreError

logger = logging.getLogger(__name__)


class EstimateState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    MATCHED_FLAT_RATE = "MATCHED_FLAT_RATE"
    TEXT_GENERATION_CALLED = "TEXT_GENERATION_CALLED"
    NORMALIZED = "NORMALIZED"
    PRICED = "PRICED"
    PERSISTED = "PERSISTED"
    RESPONDED = "RESPONDED"
    TEXT_GENERATION_FAILED = "TEXT_GENERATION_FAILED"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


class EstimateError(RuntimeError):
    state = EstimateState.RECEIVED
    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None, raw: Optional[str] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.raw = raw


class TextGenerationError(EstimateError):
    state = EstimateState.TEXT_GENERATION_FAILED


class PersistenceError(EstimateError):
    state = EstimateState.PERSISTENCE_FAILED


@dataclass
class EstimateRequest:
    customer: Dict[str, Optional[str]]
    description: str
    vehicle: Optional[str] = None
    labor_rate: Optional[float] = None
    request_id: Optional[str] = None

    @classmethod
    def from_validated(cls, data: Dict[str, Any], request_id: Optional[str] = None) -> "EstimateRequest":
        return cls(
            customer=data["customer"],
            description=data["description"],
            vehicle=data.get("vehicle"),
            labor_rate=data.get("labor_rate"),
            request_id=request_id,
        )


@dataclass
class EstimateOutcome:
    priced: PricedEstimate
    saved_job: Dict[str, Any]
    customer: Dict[str, Any]
    raw_text: str
    flat_rate: Optional[FlatRateMatch] = None
    states: List[EstimateState] = field(default_factory=list)


def build_job_payload(req: EstimateRequest, priced: PricedEstimate, customer_id) -> Dict[str, Any]:
    est = priced.estimate
    return {
        "customer_id": customer_id,
        "description": est.short_description or req.description,
        "raw_description": req.description,
        "job_type": est.job_type,
        "vehicle": req.vehicle,
        "labor_hours": est.labor_hours,
        "labor_rate": est.labor_rate,
        "labor_cost": priced.labor_cost,
        "parts": [p.to_dict() for p in est.parts],
        "parts_cost": priced.parts_cost,
        "shop_supplies_percent": est.shop_supplies_percent,
        "shop_supplies_cost": priced.shop_supplies_cost,
        "subtotal": priced.subtotal,
        "tax_set_aside": priced.tax_set_aside,
        "net_after_tax": priced.net_after_tax,
        "flat_rate_label": est.flat_rate.label if est.flat_rate else None,
        "timeline": est.timeline,
        "work_steps": list(est.work_steps),
        "notes": est.notes,
        "pro_tips": list(est.pro_tips),
        "warnings": list(est.warnings),
    }


class EstimateService:
    """Flat-rate match -> LLM -> normalize -> price -> persist."""

    def __init__(self, settings: EstimatorSettings, llm: LLMClient, store: JobStore):
        self.settings = settings
        self.llm = llm
        self.store = store

    @classmethod
    def from_settings(cls, settings: EstimatorSettings) -> "EstimateService":
        llm = LLMClient(
            provider=settings.llm_provider,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            vision_model=settings.llm_vision_model,
            timeout_s=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
            initial_backoff_s=settings.llm_initial_backoff_seconds,
        )
        return cls(settings, llm, JobStore(timeout_s=settings.db_timeout_seconds))

    def _enter(self, states: List[EstimateState], state: EstimateState, req: EstimateRequest) -> None:
        states.append(state)
        logger.debug("estimate request_id=%s state=%s", req.request_id, state.value)

    def generate(self, req: EstimateRequest) -> EstimateOutcome:
        states: List[EstimateState] = []
        self._enter(states, EstimateState.RECEIVED, req)

        match = flat_rates.match(req.description)
        if match is not None:
            self._enter(states, EstimateState.MATCHED_FLAT_RATE, req)
            logger.info("Flat-rate match '%s' hours=%s", match.label, match.to_dict()["hours"])

        rate_for_prompt = req.labor_rate or self.settings.default_labor_rate
        prompt = build_estimate_prompt(
            req.customer,
            req.vehicle,
            req.description,
            rate_for_prompt,
            flat_rates.describe_for_prompt(match),
        )

        self._enter(states, EstimateState.TEXT_GENERATION_CALLED, req)
        try:
            raw, raw_text = self.llm.complete_json(
                SYSTEM_PROMPT,
                prompt,
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature,
            )
        except LLMTimeoutError as e:
            self._enter(states, EstimateState.TEXT_GENERATION_FAILED, req)
            raise TextGenerationError(str(e), status_code=504) from e
        except LLMResponseError as e:
            self._enter(states, EstimateState.TEXT_GENERATION_FAILED, req)
            logger.error("Non-JSON reply from text generation: %.500s", e.raw)
            raise TextGenerationError(str(e), status_code=500, raw=e.raw) from e
        except LLMError as e:
            self._enter(states, EstimateState.TEXT_GENERATION_FAILED, req)
            raise TextGenerationError(str(e), status_code=500) from e

        normalized = normalize(
            raw,
            caller_labor_rate=req.labor_rate,
            default_rate=self.settings.default_labor_rate,
            default_supplies_percent=self.settings.shop_supplies_percent,
            flat_rate=match,
        )
        self._enter(states, EstimateState.NORMALIZED, req)

        priced = price(
            normalized,
            tax_rate_percent=self.settings.tax_rate_percent,
            include_tax=self.settings.include_tax,
        )
        self._enter(states, EstimateState.PRICED, req)

        try:
            customer = self.store.find_or_create_customer(
                req.customer.get("name"),
                phone=req.customer.get("phone"),
                email=req.customer.get("email"),
            )
            saved_job = self.store.insert_job(build_job_payload(req, priced, customer.get("id")))
        except StoreError as e:
            self._enter(states, EstimateState.PERSISTENCE_FAILED, req)
            raise PersistenceError(str(e), status_code=500) from e
        self._enter(states, EstimateState.PERSISTED, req)

        self._enter(states, EstimateState.RESPONDED, req)
        return EstimateOutcome(
            priced=priced,
            saved_job=saved_job,
            customer=customer,
            raw_text=raw_text,
            flat_rate=match,
            states=states,
        )
