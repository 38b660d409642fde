"""Combat router — advance a combat session and read its event log / combatants."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tactics.database import get_db
from tactics.dependencies import get_current_user_id
from tactics.schemas.combat import (
    ActionEventResponse,
    AdvanceRequest,
    AdvanceResponse,
    CombatantResponse,
)
from tactics.services.auth_service import is_campaign_member
from tactics.services.errors import (
    CombatIntegrityError,
    CombatSessionNotFound,
    CombatValidationError,
)
from tactics.services.idempotency import advance_responses
from tactics.services.store import SqlAlchemyCombatStore
from tactics.services.turn_engine import ResolutionState, advance_combat

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["combat"])

GENERIC_FAILURE = "Combat resolution failed"


async def _require_member(db: AsyncSession, campaign_id: int, user_id: int) -> None:
    if not await is_campaign_member(db, campaign_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a participant in this campaign",
        )


async def _require_session(store: SqlAlchemyCombatStore, campaign_id: int, combat_session_id: int):
    session = await store.get_session(campaign_id, combat_session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Combat session not found")
    return session


@router.post(
    "/{campaign_id}/combat/{combat_session_id}/advance",
    response_model=AdvanceResponse,
)
async def advance_combat_endpoint(
    campaign_id: int,
    combat_session_id: int,
    body: AdvanceRequest | None = None,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Resolve up to max_steps automated turns.

    Returns early when a player must act or the fight ends.  A repeated call
    with the same Idempotency-Key inside the cache window returns the first
    response without resolving anything.
    """
    await _require_member(db, campaign_id, user_id)

    cache_key = advance_responses.make_key(user_id, idempotency_key)
    if cache_key is not None:
        cached = advance_responses.get(cache_key)
        if cached is not None:
            logger.info(
                "Idempotent hit for combat %s (campaign %s)", combat_session_id, campaign_id
            )
            return cached

    max_steps = body.max_steps if body is not None else 1
    store = SqlAlchemyCombatStore(db)
    try:
        result = await advance_combat(store, campaign_id, combat_session_id, max_steps)
    except CombatSessionNotFound as exc:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except CombatValidationError as exc:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except (CombatIntegrityError, SQLAlchemyError):
        await db.rollback()
        logger.exception(
            "Combat %s resolution failed (campaign %s)", combat_session_id, campaign_id
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=GENERIC_FAILURE
        )

    if result.state == ResolutionState.interrupted:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Combat state changed concurrently; retry",
        )

    await db.commit()

    response = AdvanceResponse(
        ticks=result.ticks,
        ended=result.ended,
        requires_player_action=result.requires_player_action,
        current_turn_index=result.current_turn_index,
        next_actor_combatant_id=result.next_actor_combatant_id,
        state=result.state.value,
    )
    if cache_key is not None:
        advance_responses.put(cache_key, response)
    return response


@router.get(
    "/{campaign_id}/combat/{combat_session_id}/events",
    response_model=list[ActionEventResponse],
)
async def list_events_endpoint(
    campaign_id: int,
    combat_session_id: int,
    after_id: int | None = Query(default=None, ge=0, description="Only events with a larger id"),
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Ordered, append-only event log of a combat session."""
    await _require_member(db, campaign_id, user_id)
    store = SqlAlchemyCombatStore(db)
    await _require_session(store, campaign_id, combat_session_id)
    return await store.list_events(combat_session_id, after_id=after_id)


@router.get(
    "/{campaign_id}/combat/{combat_session_id}/combatants",
    response_model=list[CombatantResponse],
)
async def list_combatants_endpoint(
    campaign_id: int,
    combat_session_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    await _require_member(db, campaign_id, user_id)
    store = SqlAlchemyCombatStore(db)
    await _require_session(store, campaign_id, combat_session_id)
    return await store.list_combatants(combat_session_id)
