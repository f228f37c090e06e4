"""
Recovery Intake API Router

Conversational intake, exercise substitution and the approved catalog.
All endpoints require a bearer token whose subject matches the declared userId.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import Principal, get_current_principal, require_same_caller
from core.config import settings
from core.exceptions import ProtocolRejectedError, UpstreamUnavailableError, ValidationError
from services.recovery.catalog import EquipmentClass, ExerciseCatalog, get_catalog
from services.recovery.equipment import resolve_equipment_preference
from services.recovery.errors import (
    ProtocolValidationFailed,
    SubstitutionRejected,
    UnknownExerciseError,
    UpstreamFailure,
)
from services.recovery.llm import TextGenerator, get_text_generator
from services.recovery.orchestrator import RecoveryIntakeOrchestrator, to_response
from services.recovery.schemas import (
    ApplySubstitutionRequest,
    ApplySubstitutionResponse,
    CatalogEntryOut,
    CatalogResponse,
    IntakeRequest,
    IntakeResponse,
    SubstitutionRequest,
    SubstitutionResponse,
)
from services.recovery.substitution import SubstitutionAssistant, apply_substitution

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/recovery", tags=["Recovery"])


def _upstream_unavailable(e: UpstreamFailure) -> UpstreamUnavailableError:
    logger.warning(f"Recovery collaborator unavailable: {e}")
    return UpstreamUnavailableError(retry_after_s=settings.UPSTREAM_RETRY_AFTER_S)


@router.post("/intake", response_model=IntakeResponse, response_model_exclude_none=True)
async def recovery_intake(
    request: IntakeRequest,
    principal: Principal = Depends(get_current_principal),
    generator: TextGenerator = Depends(get_text_generator),
    catalog: ExerciseCatalog = Depends(get_catalog),
):
    """
    Run one intake turn.

    Returns an escalation (hasRedFlags, shouldProceed=false), a follow-up
    message with quick replies, or a validated protocol that must be gated
    before it is shown.
    """
    require_same_caller(request.user_id, principal)

    orchestrator = RecoveryIntakeOrchestrator(generator=generator, catalog=catalog)
    try:
        result = await orchestrator.handle_turn(
            request.conversation_history,
            request.user_message,
            equipment_preference=request.equipment_preference,
        )
    except UpstreamFailure as e:
        raise _upstream_unavailable(e)
    except ProtocolValidationFailed:
        # Reasons were logged by the orchestrator; the candidate is discarded
        raise ProtocolRejectedError()

    return to_response(result)


@router.post("/substitutions", response_model=SubstitutionResponse)
async def suggest_substitutions(
    request: SubstitutionRequest,
    principal: Principal = Depends(get_current_principal),
    generator: TextGenerator = Depends(get_text_generator),
    catalog: ExerciseCatalog = Depends(get_catalog),
):
    """Suggest up to three same-region replacements for one exercise."""
    require_same_caller(request.user_id, principal)

    preference = resolve_equipment_preference(request.equipment_preference, request.conversation_history)
    assistant = SubstitutionAssistant(generator=generator, catalog=catalog)
    try:
        suggestion = await assistant.substitute(
            catalog.eligible(preference),
            request.issue,
            request.target_exercise,
            active_names=[ex.name for ex in request.current_exercises],
            history=request.conversation_history,
        )
    except UnknownExerciseError as e:
        raise ValidationError(str(e))
    except UpstreamFailure as e:
        raise _upstream_unavailable(e)

    return SubstitutionResponse(
        message=suggestion.message,
        alternatives=suggestion.alternatives,
        quick_replies=suggestion.quick_replies,
        issue_kind=suggestion.issue_kind.value,
    )


@router.post("/substitutions/apply", response_model=ApplySubstitutionResponse)
async def apply_exercise_substitution(
    request: ApplySubstitutionRequest,
    principal: Principal = Depends(get_current_principal),
    catalog: ExerciseCatalog = Depends(get_catalog),
):
    """Swap one exercise in the caller's protocol. The updated protocol is returned for the caller to persist."""
    require_same_caller(request.user_id, principal)

    preference = resolve_equipment_preference(request.equipment_preference, request.conversation_history)
    try:
        protocol, record = apply_substitution(
            request.protocol,
            request.target_exercise,
            request.replacement,
            request.reason,
            catalog,
            preference,
        )
    except UnknownExerciseError as e:
        raise ValidationError(str(e))
    except SubstitutionRejected as e:
        raise ValidationError("; ".join(e.reasons))

    return ApplySubstitutionResponse(protocol=protocol, modification=record)


@router.get("/catalog", response_model=CatalogResponse)
async def list_catalog(
    body_region: Optional[str] = Query(None, alias="bodyRegion"),
    equipment: Optional[EquipmentClass] = Query(None),
    principal: Principal = Depends(get_current_principal),
    catalog: ExerciseCatalog = Depends(get_catalog),
):
    """List approved exercises, optionally filtered by body region and equipment class."""
    exercises = catalog.by_region(body_region) if body_region else catalog.exercises
    if equipment is not None:
        exercises = [ex for ex in exercises if ex.equipment_class == equipment]

    return CatalogResponse(
        version=catalog.version,
        exercises=[
            CatalogEntryOut(
                id=ex.id,
                canonical_name=ex.canonical_name,
                body_region=ex.body_region,
                equipment_class=ex.equipment_class.value,
            )
            for ex in exercises
        ],
    )
