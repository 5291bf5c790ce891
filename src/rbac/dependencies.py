"""
KGC ERP - FastAPI Dependencies

Thin transport adapter over the AuthorizationGuard. Authentication happens
upstream and leaves the caller on `request.state.subject`; this module only
builds the request intent and turns denials into HTTP errors.

Usage:
    from rbac.dependencies import require_operation

    @router.post("/rentals/{rental_id}/discount")
    async def apply_discount(
        rental_id: str,
        decision: AuthorizationDecision = Depends(require_operation("rental.discount")),
    ):
        ...

Resource tenant/location come from the X-Tenant-ID / X-Location-ID headers,
then from `tenant_id` / `location_id` path parameters, then (for writes)
from the JSON body.
"""

import json
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from config.logging_config import bind_subject, configure_from_settings, get_logger
from config.settings import get_settings

from .context import ResourceContext, Subject
from .decisions import AuthorizationDecision, DenialKind
from .exceptions import AuthorizationDenied, UnknownRoleError
from .guard import AuthorizationGuard, build_guard
from .scope import is_write_method

logger = get_logger(__name__)

TENANT_HEADER = "X-Tenant-ID"
LOCATION_HEADER = "X-Location-ID"


# =============================================================================
# CORE DEPENDENCIES
# =============================================================================

@lru_cache
def get_guard() -> AuthorizationGuard:
    """Process-wide guard; also applies the logging settings once at startup."""
    settings = get_settings()
    configure_from_settings(settings)
    return build_guard(settings)


def get_subject(request: Request) -> Optional[Subject]:
    """
    The authenticated caller, as left on request.state by upstream middleware.

    Accepts a Subject or a claims mapping. Returns None when nothing is set.
    """
    subject = getattr(request.state, "subject", None)
    if subject is None or isinstance(subject, Subject):
        return subject
    if isinstance(subject, Mapping):
        try:
            return Subject.from_claims(subject)
        except UnknownRoleError as e:
            logger.error(f"Authenticated claims carry an unknown role: {e}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": DenialKind.UNKNOWN_ROLE.error_code, "message": str(e), "details": {}},
            )
    logger.warning(f"Unsupported subject type on request state: {type(subject).__name__}")
    return None


async def _json_body(request: Request) -> Optional[Dict[str, Any]]:
    """Parsed JSON object body, or None for empty / non-object / invalid bodies."""
    raw = await request.body()
    if not raw:
        return None
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Request body is not JSON; skipping body-derived context")
        return None
    return body if isinstance(body, dict) else None


def _first(*values: Any) -> Optional[str]:
    for value in values:
        if value:
            return str(value)
    return None


def resource_from_request(
    request: Request,
    body: Optional[Mapping[str, Any]] = None,
) -> ResourceContext:
    """Headers win over path parameters, which win over the body."""
    body = body or {}
    path = request.path_params
    return ResourceContext(
        tenant_id=_first(
            request.headers.get(TENANT_HEADER),
            path.get("tenant_id"),
            body.get("tenantId"),
            body.get("tenant_id"),
        ),
        location_id=_first(
            request.headers.get(LOCATION_HEADER),
            path.get("location_id"),
            body.get("locationId"),
            body.get("location_id"),
        ),
        resource_type="ENDPOINT",
        resource_id=request.url.path,
    )


def http_exception_for(decision: AuthorizationDecision) -> HTTPException:
    """Translate a denial into the transport error clients see."""
    detail = {
        "code": decision.error_code,
        "message": decision.message,
        "details": decision.details,
    }
    if decision.denial_kind == DenialKind.MISSING_SUBJECT:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# =============================================================================
# OPERATION DEPENDENCY
# =============================================================================

def require_operation(
    operation: str,
    guard_provider: Callable[[], AuthorizationGuard] = get_guard,
) -> Callable:
    """
    Require the caller to pass the registered policy for `operation`.

    Usage as dependency:
        @router.delete("/users/{user_id}")
        async def delete_user(decision = Depends(require_operation("user.delete"))):
            ...

    Raises (inside the dependency):
        HTTPException: 401 without a subject, 403 for every other denial
    """

    async def dependency(
        request: Request,
        guard: AuthorizationGuard = Depends(guard_provider),
    ) -> AuthorizationDecision:
        subject = get_subject(request)
        is_write = is_write_method(request.method)
        body = await _json_body(request) if is_write else None
        resource = resource_from_request(request, body)

        with bind_subject(subject.subject_id if subject else None):
            decision = guard.authorize_operation(
                operation, subject, resource=resource, is_write=is_write, payload=body,
            )
            if decision.denied:
                logger.info(f"{request.method} {request.url.path} denied: {decision.error_code}")
                raise http_exception_for(decision)

        request.state.authorization = decision
        return decision

    return dependency


# =============================================================================
# EXCEPTION HANDLER
# =============================================================================

async def authorization_denied_handler(request: Request, exc: AuthorizationDenied) -> JSONResponse:
    """Render AuthorizationDenied raised by guard.enforce() inside a route."""
    error = http_exception_for(exc.decision)
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.detail},
        headers=error.headers,
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthorizationDenied, authorization_denied_handler)
