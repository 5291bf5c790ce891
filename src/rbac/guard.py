"""
KGC ERP - Authorization Guard

Orchestrates one authorization evaluation against a RequestIntent:

    1. Permissions      - ALL or ANY of the required permissions
    2. Scope            - delegated to ScopeEvaluator, denial kind kept verbatim
    3. Elevated access  - recent re-verification within the policy TTL
    4. Constraint       - numeric limit, inclusive upper bound

The first failing stage short-circuits. Every call returns exactly one
AuthorizationDecision; per-request problems never escape as exceptions.

Audit is fire-and-forget: every denial, every scope grant and every
elevated-access grant is written to the sink, and a failing sink is logged
and ignored.

Usage:
    guard = build_guard()
    decision = guard.authorize_operation(
        "rental.discount", subject,
        resource=ResourceContext(tenant_id="t-1", location_id="loc-1"),
        is_write=True, payload={"discountPercent": 15},
    )
    if not decision:
        ...
"""

import logging
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Tuple

from audit import AuditAction, AuditEntry, AuditSink, LoggingAuditSink

from .composer import PermissionComposer
from .context import EMPTY_RESOURCE, ResourceContext, Subject
from .decisions import AuthorizationDecision, DenialKind
from .elevated_access import ElevatedAccessStore
from .exceptions import AuthorizationDenied, UnknownRoleError
from .permissions import Permission
from .policy import (
    ConstraintCheck,
    ElevatedAccessRequirement,
    OperationRegistry,
    PermissionLogic,
    PolicyTables,
    ScopeRequirement,
    default_registry,
)
from .scope import ScopeEvaluator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestIntent:
    """Everything one authorization evaluation needs."""

    subject: Optional[Subject]
    required_permissions: Tuple[Permission, ...] = ()
    permission_logic: PermissionLogic = PermissionLogic.ALL
    scope: Optional[ScopeRequirement] = None
    resource: ResourceContext = EMPTY_RESOURCE
    is_write: bool = False
    elevated_access: Optional[ElevatedAccessRequirement] = None
    constraint_check: Optional[ConstraintCheck] = None
    operation: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self, "required_permissions",
            tuple(Permission(p) for p in self.required_permissions),
        )
        object.__setattr__(self, "permission_logic", PermissionLogic(self.permission_logic))


class AuthorizationGuard:
    """Composition of resolver, composer, scope evaluator and session store."""

    def __init__(
        self,
        composer: Optional[PermissionComposer] = None,
        scope_evaluator: Optional[ScopeEvaluator] = None,
        session_store: Optional[ElevatedAccessStore] = None,
        audit_sink: Optional[AuditSink] = None,
        registry: Optional[OperationRegistry] = None,
    ):
        self.composer = composer if composer is not None else PermissionComposer()
        self.hierarchy = self.composer.hierarchy
        self.scope_evaluator = (
            scope_evaluator if scope_evaluator is not None else ScopeEvaluator(self.hierarchy)
        )
        self.session_store = session_store if session_store is not None else ElevatedAccessStore()
        self.audit_sink = audit_sink
        self.registry = registry if registry is not None else default_registry()

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def authorize(self, intent: RequestIntent) -> AuthorizationDecision:
        """Evaluate an intent. Always returns exactly one decision."""
        subject = intent.subject
        if subject is None or not subject.subject_id:
            decision = AuthorizationDecision.deny(
                DenialKind.MISSING_SUBJECT,
                "No authenticated subject",
                operation=intent.operation,
            )
            logger.warning(f"Authorization without subject for operation={intent.operation}")
            self._audit(AuditAction.AUTHORIZATION_FAILED, intent, decision)
            return decision

        try:
            role = self.hierarchy.info(subject.role).role
            if role is not subject.role:
                subject = replace(subject, role=role)
            return self._evaluate(subject, intent)
        except UnknownRoleError as exc:
            logger.error(f"Role outside the compiled policy: {exc}")
            decision = AuthorizationDecision.deny(
                DenialKind.UNKNOWN_ROLE,
                str(exc),
                role=getattr(subject.role, "value", subject.role),
                operation=intent.operation,
            )
            self._audit(AuditAction.AUTHORIZATION_FAILED, intent, decision)
            return decision

    def intent_for(
        self,
        operation: str,
        subject: Optional[Subject],
        resource: Optional[ResourceContext] = None,
        is_write: bool = False,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> RequestIntent:
        """
        Build the intent for a registered operation.

        Raises:
            UnknownOperationError: no policy is registered under `operation`
        """
        policy = self.registry.get(operation)
        constraint_check = policy.constraint.bind(payload) if policy.constraint else None
        return RequestIntent(
            subject=subject,
            required_permissions=policy.required_permissions,
            permission_logic=policy.permission_logic,
            scope=policy.scope,
            resource=resource or EMPTY_RESOURCE,
            is_write=is_write,
            elevated_access=policy.elevated_access,
            constraint_check=constraint_check,
            operation=policy.name,
        )

    def authorize_operation(
        self,
        operation: str,
        subject: Optional[Subject],
        resource: Optional[ResourceContext] = None,
        is_write: bool = False,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> AuthorizationDecision:
        intent = self.intent_for(operation, subject, resource, is_write, payload)
        return self.authorize(intent)

    def enforce(
        self,
        operation: str,
        subject: Optional[Subject],
        resource: Optional[ResourceContext] = None,
        is_write: bool = False,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> AuthorizationDecision:
        """
        Like authorize_operation(), but raises on denial.

        Raises:
            AuthorizationDenied: carrying the denial decision
        """
        decision = self.authorize_operation(operation, subject, resource, is_write, payload)
        if decision.denied:
            raise AuthorizationDenied(decision)
        return decision

    # =========================================================================
    # ELEVATED ACCESS PASS-THROUGHS
    # =========================================================================

    def record_verification(self, subject_id: str):
        """Called by the re-authentication flow after a successful check."""
        return self.session_store.record_verification(subject_id)

    def clear_verification(self, subject_id: str) -> None:
        self.session_store.clear_verification(subject_id)

    # =========================================================================
    # STAGES
    # =========================================================================

    def _evaluate(self, subject: Subject, intent: RequestIntent) -> AuthorizationDecision:
        stages = (
            self._check_permissions,
            self._check_scope,
            self._check_elevated_access,
            self._check_constraint,
        )
        for stage in stages:
            denial = stage(subject, intent)
            if denial is not None:
                return denial

        logger.debug(
            f"Access granted: subject={subject.subject_id} role={subject.role.value} "
            f"operation={intent.operation}"
        )
        return AuthorizationDecision.allow(operation=intent.operation)

    def _check_permissions(
        self, subject: Subject, intent: RequestIntent
    ) -> Optional[AuthorizationDecision]:
        required = list(intent.required_permissions)
        if not required:
            return None

        missing = self.composer.missing_permissions(subject.role, required)
        if intent.permission_logic == PermissionLogic.ANY:
            failed = len(missing) == len(required)
        else:
            failed = bool(missing)
        if not failed:
            return None

        decision = AuthorizationDecision.deny(
            DenialKind.PERMISSION_DENIED,
            f"Missing permission(s): {', '.join(p.value for p in missing)}",
            role=subject.role.value,
            required_permissions=[p.value for p in required],
            missing_permissions=[p.value for p in missing],
            permission_logic=intent.permission_logic.value,
        )
        logger.warning(
            f"Permission denied: subject={subject.subject_id} role={subject.role.value} "
            f"missing={decision.details['missing_permissions']}"
        )
        self._audit(AuditAction.PERMISSION_DENIED, intent, decision)
        return decision

    def _check_scope(
        self, subject: Subject, intent: RequestIntent
    ) -> Optional[AuthorizationDecision]:
        requirement = intent.scope
        if requirement is None:
            return None

        result = self.scope_evaluator.evaluate(
            subject,
            intent.resource,
            requirement.minimum_scope,
            is_write=intent.is_write,
            allow_global_write=requirement.allow_global_write,
        )
        if result.allowed:
            self._audit(
                AuditAction.SCOPE_GRANTED, intent,
                details={"role": subject.role.value, **result.details},
            )
            return None

        decision = AuthorizationDecision.deny(
            result.denial_kind,
            result.reason,
            role=subject.role.value,
            is_write=intent.is_write,
            **result.details,
        )
        logger.warning(f"Scope denied for subject={subject.subject_id}: {result.reason}")
        self._audit(AuditAction.SCOPE_DENIED, intent, decision)
        return decision

    def _check_elevated_access(
        self, subject: Subject, intent: RequestIntent
    ) -> Optional[AuthorizationDecision]:
        requirement = intent.elevated_access
        if requirement is None:
            return None

        ttl = requirement.ttl
        window = self.session_store.fresh_window(subject.subject_id, ttl)
        if window is not None:
            remaining, valid_until = window
            self._audit(
                AuditAction.ELEVATED_ACCESS_GRANTED, intent,
                details={
                    "role": subject.role.value,
                    "ttl_seconds": ttl.total_seconds(),
                    "time_remaining_seconds": remaining.total_seconds(),
                    "valid_until": valid_until.isoformat(),
                },
            )
            return None

        decision = AuthorizationDecision.deny(
            DenialKind.ELEVATED_ACCESS_REQUIRED,
            "Recent re-verification required for this operation",
            required_ttl_seconds=ttl.total_seconds(),
        )
        logger.info(f"Elevated access required for subject={subject.subject_id}")
        self._audit(AuditAction.ELEVATED_ACCESS_DENIED, intent, decision)
        return decision

    def _check_constraint(
        self, subject: Subject, intent: RequestIntent
    ) -> Optional[AuthorizationDecision]:
        check = intent.constraint_check
        if check is None:
            return None

        limit = self.composer.resolve_constraint(subject.role, check.permission, check.key)
        if limit is None:
            return None

        value = check.effective_value
        if value <= limit:
            return None

        message = check.message or (
            f"{check.key} exceeded: {value:g} is above the limit of {limit:g} "
            f"for {subject.role.value}"
        )
        decision = AuthorizationDecision.deny(
            DenialKind.CONSTRAINT_EXCEEDED,
            message,
            permission=check.permission.value,
            constraint=check.key,
            limit=limit,
            value=value,
        )
        logger.warning(
            f"Constraint exceeded: subject={subject.subject_id} {check.key}={value} limit={limit}"
        )
        self._audit(AuditAction.CONSTRAINT_VIOLATION, intent, decision)
        return decision

    # =========================================================================
    # AUDIT
    # =========================================================================

    def _audit(
        self,
        action: AuditAction,
        intent: RequestIntent,
        decision: Optional[AuthorizationDecision] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self.audit_sink is None:
            return

        subject = intent.subject
        resource = intent.resource
        payload: Dict[str, Any] = {"operation": intent.operation}
        if decision is not None:
            payload.update(decision.details)
            payload["denial_kind"] = decision.denial_kind.value if decision.denial_kind else None
            payload["message"] = decision.message
        if details:
            payload.update(details)

        try:
            self.audit_sink.record(AuditEntry(
                action=action,
                subject_id=subject.subject_id if subject else None,
                tenant_id=resource.tenant_id or (subject.tenant_id if subject else None),
                resource_type=resource.resource_type,
                resource_id=resource.resource_id or intent.operation,
                details=payload,
            ))
        except Exception as exc:
            logger.warning(
                f"Audit sink failed for {action.value} ({type(exc).__name__}); decision unaffected"
            )


def build_guard(
    settings=None,
    audit_sink: Optional[AuditSink] = None,
    tables: Optional[PolicyTables] = None,
    registry: Optional[OperationRegistry] = None,
) -> AuthorizationGuard:
    """
    Composition root.

    Validates the policy tables (cycles, unknown parents, missing entries),
    then wires the composer, scope evaluator and session store from settings.
    The store's sweep ceiling covers the longest elevated-access TTL in the
    registry, even when that exceeds the configured ceiling.
    With audit enabled and no sink given, entries go to the "audit" logger.

    Raises:
        PolicyConfigurationError: the policy tables are inconsistent
    """
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()

    composer = (tables if tables is not None else PolicyTables()).compile()
    if registry is None:
        registry = default_registry(settings.elevated_access_default_ttl_seconds)

    store = ElevatedAccessStore(
        sweep_interval=settings.session_sweep_interval,
        sweep_ceiling=_sweep_ceiling(settings, registry),
    )
    if audit_sink is None and settings.audit_enabled:
        audit_sink = LoggingAuditSink()

    guard = AuthorizationGuard(
        composer=composer,
        scope_evaluator=ScopeEvaluator(composer.hierarchy),
        session_store=store,
        audit_sink=audit_sink if settings.audit_enabled else None,
        registry=registry,
    )
    logger.info(
        f"Authorization guard ready: {len(composer.hierarchy.roles)} roles, "
        f"{len(guard.registry)} operations, sweep ceiling={store.sweep_ceiling}, "
        f"audit={'on' if guard.audit_sink is not None else 'off'}"
    )
    return guard


def _sweep_ceiling(settings, registry: OperationRegistry) -> timedelta:
    ceiling = timedelta(seconds=settings.elevated_access_max_ttl_seconds)
    for policy in registry:
        if policy.elevated_access is not None and policy.elevated_access.ttl > ceiling:
            ceiling = policy.elevated_access.ttl
    return ceiling
