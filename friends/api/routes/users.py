"""
friends.api.routes.users — Member account endpoints
=====================================================

Public: login, card login, membership verification, registration,
profile options.  Everything else needs a ``login`` bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import Engine

from friends.api.deps import get_auth_manager, get_current_login, get_engine
from friends.database.models import Activity, Badge, Reward, User
from friends.engine.tokens import LoginToken
from friends.errors import PermissionDeniedError
from friends.schemas import (
    CardLoginRequest,
    LoginRequest,
    RegisterRequest,
    UpdateUserRequest,
    VerifyMembershipRequest,
)
from friends.services import user_service
from friends.services.auth_service import AuthManager, AuthResult, PendingVerification

router = APIRouter(prefix="/users", tags=["users"])


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def _user_dict(u: User, *, include_profile: bool = False) -> dict:
    data = {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "username": u.username,
        "barcode_id": u.barcode_id,
        "password_reset_required": u.password_reset_required,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }
    if include_profile:
        meta = u.metadata_
        data["profile"] = {
            "first_name": meta.first_name if meta else "",
            "last_name": meta.last_name if meta else "",
            "birth_date": meta.birth_date.isoformat() if meta and meta.birth_date else None,
            "email_optin": meta.email_optin if meta else False,
            "gender": meta.gender if meta else None,
            "race": meta.race if meta else None,
            "household_income": meta.household_income if meta else None,
            "household_size": meta.household_size if meta else None,
            "education": meta.education if meta else None,
            "points": meta.points if meta else 0,
            "current_member": meta.current_member if meta else False,
            "current_member_number": meta.current_member_number if meta else "",
            "phone": u.phone,
            "street_addr": u.street_addr,
            "city": u.city,
            "state": u.state,
            "zip": u.zip,
        }
    return data


def _item_dict(item: Badge | Activity | Reward) -> dict:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "points": item.points,
    }


def _page(total: int, page: int, page_size: int, items: list[dict]) -> dict:
    return {"total": total, "page": page, "page_size": page_size, "data": items}


def _auth_response(outcome: AuthResult | PendingVerification) -> JSONResponse | dict:
    if isinstance(outcome, PendingVerification):
        return JSONResponse(
            status_code=202,
            content={
                "data": {"message": outcome.message, "hints": outcome.hints},
                "meta": {"verification_token": outcome.verification_token},
            },
        )
    return {
        "data": _user_dict(outcome.user, include_profile=True),
        "meta": {"token": outcome.token},
    }


# ---------------------------------------------------------------------------
# POST /users/login  ·  POST /users/login/card
# ---------------------------------------------------------------------------
@router.post("/login")
def login(
    body: LoginRequest,
    engine: Engine = Depends(get_engine),
    auth: AuthManager = Depends(get_auth_manager),
):
    """Password login with ``login``, ``username`` or ``email``."""
    return _auth_response(user_service.login(engine, auth, body))


@router.post("/login/card")
def login_by_card(
    body: CardLoginRequest,
    engine: Engine = Depends(get_engine),
    auth: AuthManager = Depends(get_auth_manager),
):
    """Password-less login with a membership card barcode."""
    return _auth_response(user_service.login_by_card(engine, auth, body))


# ---------------------------------------------------------------------------
# POST /users/verify-membership
# ---------------------------------------------------------------------------
@router.post("/verify-membership")
def verify_membership(
    body: VerifyMembershipRequest,
    engine: Engine = Depends(get_engine),
    auth: AuthManager = Depends(get_auth_manager),
):
    result = user_service.verify_membership(engine, auth, body)
    return {
        "data": {"membership": result.membership},
        "meta": {"membership_token": result.membership_token},
    }


# ---------------------------------------------------------------------------
# Profile options (public)
# ---------------------------------------------------------------------------
@router.get("/profile-options")
def all_profile_options():
    return user_service.profile_options()


@router.get("/profile-options/{field}")
def profile_options(field: str):
    return user_service.profile_options(field)


# ---------------------------------------------------------------------------
# POST /users  (registration)
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
def register(
    body: RegisterRequest,
    engine: Engine = Depends(get_engine),
    auth: AuthManager = Depends(get_auth_manager),
):
    result = user_service.register(engine, auth, body)
    return {
        "data": _user_dict(result.user, include_profile=True),
        "meta": {
            "token": result.token,
            "membership_bound": result.membership.bound,
            "membership_error": result.membership.error,
        },
    }


# ---------------------------------------------------------------------------
# Authenticated reads
# ---------------------------------------------------------------------------
@router.get("")
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    _login: LoginToken = Depends(get_current_login),
    engine: Engine = Depends(get_engine),
):
    total, users = user_service.list_users(engine, page=page, page_size=page_size)
    return _page(total, page, page_size, [_user_dict(u) for u in users])


@router.get("/{user_id}")
def show_user(
    user_id: int,
    _login: LoginToken = Depends(get_current_login),
    engine: Engine = Depends(get_engine),
):
    return {"data": _user_dict(user_service.get_user(engine, user_id), include_profile=True)}


@router.put("/{user_id}")
def update_user(
    user_id: int,
    body: UpdateUserRequest,
    login: LoginToken = Depends(get_current_login),
    engine: Engine = Depends(get_engine),
):
    if login.user_id != user_id:
        raise PermissionDeniedError("You may only update your own profile")
    user = user_service.update_user(engine, user_id, body)
    return {"data": _user_dict(user, include_profile=True)}


def _relation_route(relation: str):
    def handler(
        user_id: int,
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100),
        _login: LoginToken = Depends(get_current_login),
        engine: Engine = Depends(get_engine),
    ):
        total, items = user_service.user_relation(
            engine, user_id, relation, page=page, page_size=page_size
        )
        return _page(total, page, page_size, [_item_dict(i) for i in items])

    handler.__name__ = f"user_{relation}"
    return handler


for _relation in ("activities", "rewards", "badges"):
    router.add_api_route(f"/{{user_id}}/{_relation}", _relation_route(_relation), methods=["GET"])


@router.get("/{user_id}/bookmarks/{bookmark_type}")
def user_bookmarks(
    user_id: int,
    bookmark_type: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    _login: LoginToken = Depends(get_current_login),
    engine: Engine = Depends(get_engine),
):
    total, items = user_service.user_bookmarks(
        engine, user_id, bookmark_type, page=page, page_size=page_size
    )
    return _page(total, page, page_size, [_item_dict(i) for i in items])
