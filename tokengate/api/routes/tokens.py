from fastapi import APIRouter, Depends, status

from tokengate.core.container import Container
from tokengate.core.errors import IdentityTakenAppError, ValidationAppError
from tokengate.core.rate_limit import get_container, rate_limited
from tokengate.schemas.identity import (
    CheckNameRequest,
    CheckNameResponse,
    RegisteredToken,
    RegisterTokenRequest,
)
from tokengate.services.collision_guard import LockState, LockStatus, ProposedIdentity
from tokengate.services.verification_queue import validate_subject

router = APIRouter(tags=["Tokens"])


def _lock_message(identity: ProposedIdentity, state: LockState) -> str:
    name = identity.name
    if identity.symbol:
        symbol = identity.symbol
        if state.status is LockStatus.LOCKED_GRADUATED:
            return f'A graduated token with name "{name}" and symbol "{symbol}" exists'
        if state.status is LockStatus.LOCKED_RECENT:
            return f'A token with name "{name}" and symbol "{symbol}" was recently created'
        return f'Token name "{name}" and symbol "{symbol}" are available'

    if state.status is LockStatus.LOCKED_GRADUATED:
        return f'Token name "{name}" belongs to a graduated token'
    if state.status is LockStatus.LOCKED_RECENT:
        return f'Token name "{name}" was recently created'
    return f'Token name "{name}" is available'


@router.post(
    "/tokens/check-name",
    response_model=CheckNameResponse,
    dependencies=[Depends(rate_limited("check-name"))],
)
def check_name(
    payload: CheckNameRequest,
    container: Container = Depends(get_container),
) -> CheckNameResponse:
    """Report whether a token name (and symbol) is locked against reuse.

    A name is locked permanently by a graduated token, and for a short
    window after another token with the same identity was created.
    """
    guard = container.collision_guard
    identity = guard.normalize(payload.name, payload.symbol)
    state = guard.evaluate(identity.name, identity.symbol)

    return CheckNameResponse(
        exists=state.locked,
        lock_state=state.status,
        remaining_seconds=state.remaining_seconds,
        message=_lock_message(identity, state),
    )


@router.post(
    "/tokens",
    response_model=RegisteredToken,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("register"))],
)
def register_token(
    payload: RegisterTokenRequest,
    container: Container = Depends(get_container),
) -> RegisteredToken:
    """Register a token identity.

    The collision check runs first for a descriptive rejection; the registry
    repeats it inside the insert, so concurrent duplicates get ``409`` too.

    Raises:
        IdentityTakenAppError: 409 when the identity is locked or the token exists.
    """
    subject = validate_subject(payload.subject)
    guard = container.collision_guard
    identity = guard.normalize(payload.name, payload.symbol)
    if identity.symbol is None:
        raise ValidationAppError(
            code="symbol_required",
            message="Token symbol is required for registration",
            details={"field": "symbol"},
        )

    state = guard.evaluate(identity.name, identity.symbol)
    if state.locked:
        details = {"lock_state": state.status.value}
        if state.remaining_seconds is not None:
            details["remaining_seconds"] = round(state.remaining_seconds, 3)
        raise IdentityTakenAppError(
            code="identity_locked",
            message=_lock_message(identity, state),
            details=details,
        )

    registration = guard.register(subject, identity.name, identity.symbol)
    return RegisteredToken(
        subject=registration.subject,
        name=registration.name,
        symbol=registration.symbol,
        created_at=registration.created_at,
        graduated=registration.graduated,
    )
