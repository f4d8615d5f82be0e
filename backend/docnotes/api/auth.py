from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Depends, Request, status

from docnotes.api.deps import (
    AdminSession,
    AuthContext,
    CurrentSession,
    Pagination,
    client_ip,
    get_audit_sink,
    get_auth_service,
    get_optional_session_context,
    pagination,
    rate_limit_auth,
)
from docnotes.exceptions import NotFoundError
from docnotes.models import AuditAction, AuditResource
from docnotes.schemas.auth import (
    AuthResponse,
    LogoutResponse,
    ProfileUpdate,
    UserAdminUpdate,
    UserLogin,
    UserRegister,
    UserResponse,
)
from docnotes.schemas.common import Page
from docnotes.services.audit import AuditEvent, AuditSink
from docnotes.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])

Auth = Annotated[AuthService, Depends(get_auth_service)]
Audit = Annotated[AuditSink, Depends(get_audit_sink)]


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_auth)],
)
async def register(data: UserRegister, request: Request, auth: Auth, audit: Audit):
    """Create a GP account and sign it in."""
    ip_address = client_ip(request)
    user_agent = request.headers.get("user-agent")
    user, session = await auth.register(
        data.email, data.password, data.full_name, ip_address, user_agent
    )
    audit.record(
        AuditEvent(
            user_id=user.id,
            action=AuditAction.create,
            resource=AuditResource.user,
            resource_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=session.token,
        expires_at=session.expires_at,
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[Depends(rate_limit_auth)],
)
async def login(credentials: UserLogin, request: Request, auth: Auth, audit: Audit):
    """Exchange email and password for a session token."""
    ip_address = client_ip(request)
    user_agent = request.headers.get("user-agent")
    user, session = await auth.login(
        credentials.email, credentials.password, ip_address, user_agent
    )
    audit.record(
        AuditEvent(
            user_id=user.id,
            action=AuditAction.login,
            resource=AuditResource.session,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=session.token,
        expires_at=session.expires_at,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(context: CurrentSession, auth: Auth, audit: Audit):
    """Sign out everywhere: every session of the caller is deleted."""
    revoked = await auth.logout(context.user_id)
    audit.record(context.event(AuditAction.logout, AuditResource.session))
    return LogoutResponse(success=True, sessions_revoked=revoked)


@router.get("/me", response_model=Optional[UserResponse])
async def me(
    context: Annotated[Optional[AuthContext], Depends(get_optional_session_context)],
    auth: Auth,
):
    """Current user, or ``null`` for anonymous callers."""
    if context is None:
        return None
    user = await auth.current_user(context.user_id)
    return UserResponse.model_validate(user) if user else None


@router.patch("/me", response_model=UserResponse)
async def update_profile(data: ProfileUpdate, context: CurrentSession, auth: Auth, audit: Audit):
    user = await auth.update_profile(context.user_id, data.full_name)
    audit.record(context.event(AuditAction.update, AuditResource.user, user.id))
    return UserResponse.model_validate(user)


@router.get("/users", response_model=Page[UserResponse])
async def list_users(
    _admin: AdminSession,
    auth: Auth,
    page: Pagination = Depends(pagination),
):
    users, total = await auth.list_users(page.skip, page.limit)
    return Page[UserResponse](
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page.page,
        limit=page.limit,
    )


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    data: UserAdminUpdate,
    context: AdminSession,
    auth: Auth,
    audit: Audit,
):
    """Change another account's name, role or active flag.

    Deactivating an account also ends all of its sessions.
    """
    user = await auth.update_user(user_id, data.model_dump(exclude_unset=True))
    if user is None:
        raise NotFoundError("User not found")
    audit.record(context.event(AuditAction.update, AuditResource.user, user.id))
    return UserResponse.model_validate(user)
