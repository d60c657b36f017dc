"""Decision model API routes."""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from underwriter.api.deps import get_service, require_api_key
from underwriter.config import get_settings
from underwriter.core.decisions.models import EvaluationResult, ModelDescription
from underwriter.core.service import DecisionService

router = APIRouter(dependencies=[Depends(require_api_key)])

limiter = Limiter(key_func=get_remote_address)

EXECUTION_ID_HEADER = "X-Execution-Id"

Scalar = Optional[Union[bool, int, float, str]]
InputPayload = Dict[str, Dict[str, Scalar]]


def _check_model(service: DecisionService, model: str) -> None:
    if model != service.model.name:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Decision model '{model}' not found",
        )


def _respond(result: EvaluationResult, response: Response):
    """Results on success; status, errors and partial results otherwise."""
    if result.succeeded:
        response.headers[EXECUTION_ID_HEADER] = result.correlation_id
        return result.results
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        headers={EXECUTION_ID_HEADER: result.correlation_id},
        content={
            "status": result.state.value,
            "errors": [error.model_dump(mode="json") for error in result.errors],
            "results": result.results,
        },
    )


@router.get("/api/models", response_model=List[ModelDescription])
def list_models(service: DecisionService = Depends(get_service)):
    """List loaded decision models."""
    return [ModelDescription.from_model(service.model)]


@router.get("/{model}", response_model=ModelDescription)
def get_model(model: str, service: DecisionService = Depends(get_service)):
    """Get the definition of a decision model."""
    _check_model(service, model)
    return ModelDescription.from_model(service.model)


@router.post("/{model}")
@limiter.limit(lambda: get_settings().rate_limit)
def evaluate_model(
    request: Request,
    response: Response,
    model: str,
    payload: InputPayload = Body(...),
    service: DecisionService = Depends(get_service),
):
    """Evaluate every decision of the model."""
    _check_model(service, model)
    result = service.evaluate(payload)
    return _respond(result, response)


@router.post("/{model}/{decision}")
@limiter.limit(lambda: get_settings().rate_limit)
def evaluate_decision(
    request: Request,
    response: Response,
    model: str,
    decision: str,
    payload: InputPayload = Body(...),
    service: DecisionService = Depends(get_service),
):
    """Evaluate one decision and the decisions it depends on."""
    _check_model(service, model)
    if not service.has_decision(decision):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Decision '{decision}' not found in '{model}'",
        )
    result = service.evaluate(payload, decision=decision)
    return _respond(result, response)
