"""Session login and the authorization (consent) dialog"""

import time
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from authserver.api.errors import error_response
from authserver.core.config import logger
from authserver.core.dependencies import DBSession, SessionUser, get_client_ip
from authserver.core.errors import (
    AccessDeniedError,
    AuthServerError,
    BadCredentialsError,
    GrantDisabledError,
    InsufficientScopeError,
    LoginDisabledError,
    NotFoundError,
)
from authserver.schemas.oauth import (
    AuthorizationResult,
    AuthorizationTransaction,
    ClientSummary,
    ResponseType,
)
from authserver.schemas.user import UserSummary
from authserver.services.audit_service import audit_service
from authserver.services.authorization_service import authorization_service
from authserver.services.brute_force_protection import brute_force_protection
from authserver.services.credential_validator import credential_validator
from authserver.services.scope_service import scope_service
from authserver.services.stats_service import stats_service
from authserver.services.user_service import user_service
from authserver.utils.validators import (
    validate_password,
    validate_redirect_uri,
    validate_scope,
    validate_transaction_id,
    validate_username,
)

router = APIRouter()

# Session keys
SESSION_USER_ID = "user_id"
SESSION_AUTH_TIME = "auth_time"
SESSION_RETURN_TO = "return_to"
SESSION_TRANSACTIONS = "authorize"


def _redirect_to_login(request: Request) -> RedirectResponse:
    request.session[SESSION_RETURN_TO] = str(request.url)
    return RedirectResponse(url="/login", status_code=303)


def build_redirect_url(result: AuthorizationResult) -> str:
    """
    Build the client redirect for a decided transaction

    Code responses go in the query string, implicit tokens in the fragment.
    """
    encoded = urlencode(result.params)
    if result.response_type == ResponseType.TOKEN:
        return f"{result.redirect_uri}#{encoded}"
    separator = "&" if "?" in result.redirect_uri else "?"
    return f"{result.redirect_uri}{separator}{encoded}"


def _denied_redirect_url(transaction: AuthorizationTransaction) -> str:
    params = {"error": "access_denied"}
    if transaction.state:
        params["state"] = transaction.state
    return build_redirect_url(
        AuthorizationResult(
            redirect_uri=transaction.redirect_uri,
            response_type=transaction.response_type,
            params=params,
        )
    )


# ==================== Login ====================


@router.get("/login")
async def login_form(user: SessionUser):
    """Describe the login form, or the logged-in user"""
    if user is not None:
        return {"logged_in": True, "user": UserSummary.model_validate(user).model_dump()}
    return {"logged_in": False, "fields": ["username", "password"]}


@router.post("/login")
async def login(
    request: Request,
    db: DBSession,
    username: Annotated[str, Form()],
    password: Annotated[str, Form()],
):
    """
    Log a user into the browser session

    On success the user id and login time are stored in the signed session
    cookie and the browser is sent back to where it came from.
    """
    ip_address = get_client_ip(request)
    user_agent = request.headers.get("User-Agent")

    for is_valid, message in (validate_username(username), validate_password(password)):
        if not is_valid:
            return error_response("invalid_request", message)

    is_locked, lockout_reason = await brute_force_protection.is_locked_out(username, ip_address)
    if is_locked:
        return error_response("access_denied", lockout_reason, status_code=429)

    try:
        user = credential_validator.validate_user(
            await user_service.get_by_username(db, username),
            password,
        )
    except (NotFoundError, BadCredentialsError, LoginDisabledError) as e:
        stats_service.increment("failedLogin")
        await brute_force_protection.record_failed_attempt(username, ip_address)
        await audit_service.log_login(
            db=db,
            username=username,
            success=False,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info(f"Login failed for {username}: {e.error_code}")
        return error_response("access_denied", "Invalid username or password", status_code=401)

    await user_service.update_login_time(db, user)
    await brute_force_protection.reset_failed_attempts(username, ip_address)
    stats_service.increment("userLogin")
    await audit_service.log_login(
        db=db,
        username=username,
        success=True,
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    request.session[SESSION_USER_ID] = user.id
    request.session[SESSION_AUTH_TIME] = int(time.time())
    return_to = request.session.pop(SESSION_RETURN_TO, None) or "/"
    return RedirectResponse(url=return_to, status_code=303)


@router.get("/logout")
async def logout(request: Request):
    """Clear the browser session"""
    request.session.clear()
    return RedirectResponse(url="/", status_code=303)


# ==================== Authorization dialog ====================


@router.get("/dialog/authorize")
async def authorize(
    request: Request,
    db: DBSession,
    user: SessionUser,
    client_id: Annotated[str, Query()],
    redirect_uri: Annotated[str, Query()],
    response_type: Annotated[str, Query()] = ResponseType.CODE.value,
    scope: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
):
    """
    Authorization endpoint

    Requires a logged-in user. Trusted clients are redirected straight back
    with a code or token; for other clients a consent document with a
    transaction_id is returned, to be answered at /dialog/authorize/decision.
    """
    if user is None:
        return _redirect_to_login(request)

    try:
        response_type_enum = ResponseType(response_type)
    except ValueError:
        return error_response(
            "unsupported_response_type",
            f"Response type '{response_type}' is not supported",
        )

    for is_valid, message in (validate_redirect_uri(redirect_uri), validate_scope(scope)):
        if not is_valid:
            return error_response("invalid_request", message)

    auth_time = request.session.get(SESSION_AUTH_TIME) or int(time.time())

    # Errors here are never redirected: the redirect URI is not trusted yet
    try:
        transaction, client = await authorization_service.begin_authorization(
            db,
            client_id=client_id,
            redirect_uri=redirect_uri,
            requested_scope=scope_service.parse_scope_list(scope),
            user=user,
            auth_time=auth_time,
            response_type=response_type_enum,
            state=state,
        )
    except GrantDisabledError as e:
        return error_response("unsupported_response_type", e.message)
    except InsufficientScopeError as e:
        return error_response("insufficient_scope", e.message, status_code=403)
    except NotFoundError:
        return error_response("invalid_client", "Unknown client")
    except AuthServerError as e:
        return error_response("invalid_request", e.message)

    if client.trusted_client:
        try:
            result = await authorization_service.decide(db, transaction, allowed=True)
        except AuthServerError as e:
            logger.warning(f"Authorization decision failed: {e.error_code}")
            return error_response("invalid_request", e.message)
        return RedirectResponse(url=build_redirect_url(result), status_code=302)

    transactions = request.session.get(SESSION_TRANSACTIONS, {})
    transactions[transaction.transaction_id] = transaction.model_dump(mode="json")
    request.session[SESSION_TRANSACTIONS] = transactions

    return JSONResponse(
        content={
            "transaction_id": transaction.transaction_id,
            "client": ClientSummary.model_validate(client).model_dump(),
            "user": UserSummary.model_validate(user).model_dump(),
            "scope": scope_service.to_scope_string(transaction.scope),
        },
        headers={"Cache-Control": "no-store"},
    )


@router.post("/dialog/authorize/decision")
async def decision(
    request: Request,
    db: DBSession,
    user: SessionUser,
    transaction_id: Annotated[str, Form()],
    scope: Annotated[str | None, Form()] = None,
    cancel: Annotated[str | None, Form()] = None,
):
    """
    Consent decision

    Any non-empty `cancel` value denies the request. An optional `scope`
    narrows the negotiated scope; it can never widen it.
    """
    if user is None:
        return _redirect_to_login(request)

    for is_valid, message in (validate_transaction_id(transaction_id), validate_scope(scope)):
        if not is_valid:
            return error_response("invalid_request", message)

    transactions = request.session.get(SESSION_TRANSACTIONS, {})
    stored = transactions.pop(transaction_id, None)
    request.session[SESSION_TRANSACTIONS] = transactions
    if stored is None:
        return error_response("invalid_request", "Unknown or expired transaction")

    transaction = AuthorizationTransaction.model_validate(stored)
    if transaction.user_id != user.id:
        return error_response("invalid_request", "Transaction belongs to another user")

    try:
        result = await authorization_service.decide(
            db,
            transaction,
            allowed=not cancel,
            scope=scope_service.parse_scope_list(scope),
        )
    except AccessDeniedError:
        return RedirectResponse(url=_denied_redirect_url(transaction), status_code=302)
    except AuthServerError as e:
        logger.warning(f"Authorization decision failed: {e.error_code}")
        return error_response("invalid_request", e.message)

    return RedirectResponse(url=build_redirect_url(result), status_code=302)


# ==================== Stats ====================


@router.get("/stats")
async def stats(user: SessionUser):
    """Counters since server start; admin users only"""
    if user is None or "user.admin" not in (user.role or []):
        return error_response("access_denied", "Admin role required", status_code=403)
    return stats_service.snapshot()
