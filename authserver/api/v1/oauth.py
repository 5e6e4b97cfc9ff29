"""OAuth2 token, introspection and revocation endpoints"""

from typing import Annotated

from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse

from authserver.api.errors import error_response
from authserver.core.config import logger
from authserver.core.dependencies import AuthenticatedClient, DBSession, get_client_ip
from authserver.core.errors import (
    AuthServerError,
    GrantDeniedError,
    GrantDisabledError,
    InsufficientScopeError,
    InvalidTokenError,
)
from authserver.schemas.oauth import GrantType, IntrospectionResponse, TokenResponse
from authserver.services.audit_service import audit_service
from authserver.services.brute_force_protection import brute_force_protection
from authserver.services.credential_validator import credential_validator
from authserver.services.grant_service import GrantContext, grant_service
from authserver.services.introspection_service import introspection_service
from authserver.services.scope_service import scope_service
from authserver.utils.validators import (
    validate_jwt,
    validate_password,
    validate_redirect_uri,
    validate_scope,
    validate_username,
)

router = APIRouter()

# Client scope needed to call each endpoint / grant
TOKEN_SCOPE = ["auth.token"]
CLIENT_SCOPE = ["auth.client"]
INTROSPECT_SCOPE = ["auth.info", "auth.token", "auth.client"]
REVOKE_SCOPE = ["auth.token", "auth.client"]


def _check_token_params(
    grant_type: GrantType,
    username: str | None,
    password: str | None,
    code: str | None,
    redirect_uri: str | None,
    refresh_token: str | None,
    scope: str | None,
) -> str | None:
    """Return an error description for malformed grant parameters, or None"""
    checks = [validate_scope(scope)]
    if grant_type == GrantType.PASSWORD:
        checks += [validate_username(username), validate_password(password)]
    elif grant_type == GrantType.AUTHORIZATION_CODE:
        if not code:
            return "Missing required parameter: code"
        checks.append(validate_redirect_uri(redirect_uri))
    elif grant_type == GrantType.REFRESH_TOKEN:
        checks.append(validate_jwt(refresh_token))

    for is_valid, message in checks:
        if not is_valid:
            return message
    return None


@router.post("/token", response_model=TokenResponse)
async def token_endpoint(
    request: Request,
    db: DBSession,
    client: AuthenticatedClient,
    grant_type: Annotated[str, Form()],
    scope: Annotated[str | None, Form()] = None,
    username: Annotated[str | None, Form()] = None,
    password: Annotated[str | None, Form()] = None,
    code: Annotated[str | None, Form()] = None,
    redirect_uri: Annotated[str | None, Form()] = None,
    refresh_token: Annotated[str | None, Form()] = None,
):
    """
    OAuth2 Token Endpoint

    Supports:
    - authorization_code: code + redirect_uri
    - password: username + password
    - client_credentials
    - refresh_token: refresh_token

    The client authenticates with HTTP Basic or client_id/client_secret.
    Every failed grant answers the same invalid_grant error.
    """
    ip_address = get_client_ip(request)
    user_agent = request.headers.get("User-Agent")

    logger.info(
        f"[TRACE] Token endpoint called: grant_type={grant_type}, client_id={client.client_id}",
        extra={
            "trace_point": "token_endpoint_start",
            "grant_type": grant_type,
            "client_id": client.client_id,
            "ip_address": ip_address,
        },
    )

    try:
        grant_type_enum = GrantType(grant_type)
    except ValueError:
        grant_type_enum = None
    if grant_type_enum is None or grant_type_enum == GrantType.IMPLICIT:
        return error_response(
            "unsupported_grant_type",
            f"Grant type '{grant_type}' is not supported",
        )

    problem = _check_token_params(
        grant_type_enum, username, password, code, redirect_uri, refresh_token, scope
    )
    if problem:
        return error_response("invalid_request", problem)

    required = CLIENT_SCOPE if grant_type_enum == GrantType.CLIENT_CREDENTIALS else TOKEN_SCOPE
    try:
        credential_validator.require_scope(client.allowed_scope, required)
    except InsufficientScopeError:
        return error_response(
            "insufficient_scope",
            f"Client scope not authorized, requires one of: {', '.join(required)}",
            status_code=403,
        )

    if grant_type_enum == GrantType.PASSWORD:
        is_locked, lockout_reason = await brute_force_protection.is_locked_out(username, ip_address)
        if is_locked:
            return error_response(
                "invalid_grant",
                lockout_reason or "Account temporarily locked",
                status_code=429,
            )

    context = GrantContext(
        db=db,
        client=client,
        username=username,
        password=password,
        code=code,
        redirect_uri=redirect_uri,
        refresh_token=refresh_token,
        scope=scope_service.parse_scope_list(scope),
    )

    try:
        token_set = await grant_service.grant(grant_type_enum, context)
    except GrantDisabledError:
        return error_response(
            "unsupported_grant_type",
            f"Grant type '{grant_type}' is disabled",
        )
    except GrantDeniedError:
        if grant_type_enum == GrantType.PASSWORD:
            await brute_force_protection.record_failed_attempt(username, ip_address)
        await audit_service.log_grant_denied(
            db=db,
            grant_type=grant_type_enum.value,
            client_id=client.client_id,
            username=username,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return error_response("invalid_grant", "Grant denied")

    if grant_type_enum == GrantType.PASSWORD:
        await brute_force_protection.reset_failed_attempts(username, ip_address)

    await audit_service.log_token_issued(
        db=db,
        grant_type=grant_type_enum.value,
        client_id=client.client_id,
        scope=token_set.scope,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    response = TokenResponse(
        access_token=token_set.access_token,
        refresh_token=token_set.refresh_token,
        expires_in=token_set.expires_in,
        token_type=token_set.token_type,
        scope=scope_service.to_scope_string(token_set.scope),
        auth_time=int(token_set.auth_time.timestamp()),
        grant_type=token_set.grant_type,
    )
    return JSONResponse(
        content=response.model_dump(mode="json", exclude_none=True),
        headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
    )


@router.post("/introspect", response_model=IntrospectionResponse)
async def introspect_endpoint(
    db: DBSession,
    client: AuthenticatedClient,
    access_token: Annotated[str | None, Form()] = None,
):
    """
    Token introspection

    Returns metadata for a live access token, or 401 if the token is
    unknown, revoked, expired or invalid.
    """
    try:
        credential_validator.require_scope(client.allowed_scope, INTROSPECT_SCOPE)
    except InsufficientScopeError:
        return error_response("insufficient_scope", "Client scope not authorized", status_code=403)

    if not access_token:
        return error_response("invalid_token", "Unauthorized", status_code=401)

    try:
        document = await introspection_service.introspect(db, access_token)
    except AuthServerError as e:
        logger.warning(
            f"Introspection failed: {e.error_code}",
            extra={"client_id": client.client_id, "reason": e.error_code},
        )
        return error_response("invalid_token", "Unauthorized", status_code=401)

    return JSONResponse(content=document.model_dump(mode="json", exclude_none=True))


@router.post("/token/revoke")
async def revoke_endpoint(
    request: Request,
    db: DBSession,
    client: AuthenticatedClient,
    access_token: Annotated[str | None, Form()] = None,
    refresh_token: Annotated[str | None, Form()] = None,
):
    """
    Token revocation

    Revokes the access token, the refresh token, or both. Revoking an
    unknown token is an error.
    """
    try:
        credential_validator.require_scope(client.allowed_scope, REVOKE_SCOPE)
    except InsufficientScopeError:
        return error_response("insufficient_scope", "Client scope not authorized", status_code=403)

    supplied = [name for name, value in (("access_token", access_token), ("refresh_token", refresh_token)) if value]

    try:
        await introspection_service.revoke(access_token, refresh_token)
    except InvalidTokenError as e:
        await audit_service.log_token_revoke(
            db=db,
            client_id=client.client_id,
            revoked=supplied,
            success=False,
            ip_address=get_client_ip(request),
        )
        return error_response("invalid_token", e.message)

    await audit_service.log_token_revoke(
        db=db,
        client_id=client.client_id,
        revoked=supplied,
        ip_address=get_client_ip(request),
    )
    return JSONResponse(content={})
