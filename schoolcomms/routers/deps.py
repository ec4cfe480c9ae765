from __future__ import annotations

from fastapi import Depends, Header, HTTPException

from schoolcomms.app_state import get_context
from schoolcomms.core.errors import ValidationError
from schoolcomms.core.identity import Party, PartyKind
from schoolcomms.core.outcome import Outcome
from schoolcomms.gateway import DataStoreGateway


_STATUS_BY_CODE = {
    'validation': 400,
    'reply_not_allowed': 400,
    'not_found': 404,
    'store_unavailable': 503,
}


def get_gateway() -> DataStoreGateway:
    return get_context().gateway


def current_viewer(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Party:
    # Identity is asserted by the fronting identity provider.
    if not (x_user_id or '').strip() or not (x_user_role or '').strip():
        raise HTTPException(status_code=403, detail='Unauthorized')
    try:
        return Party.from_role(x_user_role, x_user_id.strip())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


def require_admin(viewer: Party = Depends(current_viewer)) -> Party:
    if viewer.kind != PartyKind.ADMIN:
        raise HTTPException(status_code=403, detail='Unauthorized')
    return viewer


def require_staff(viewer: Party = Depends(current_viewer)) -> Party:
    if viewer.kind not in (PartyKind.ADMIN, PartyKind.TEACHER):
        raise HTTPException(status_code=403, detail='Unauthorized')
    return viewer


def require_student(viewer: Party = Depends(current_viewer)) -> Party:
    if viewer.kind != PartyKind.STUDENT:
        raise HTTPException(status_code=403, detail='Unauthorized')
    return viewer


def unwrap(outcome: Outcome):
    if outcome.ok:
        return outcome.value
    error = outcome.error
    code = error.code if error else 'internal'
    raise HTTPException(
        status_code=_STATUS_BY_CODE.get(code, 500),
        detail={
            'code': code,
            'message': error.message if error else 'Something went wrong',
            'retryable': bool(error and error.retryable),
        },
    )
