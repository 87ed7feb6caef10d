"""Authorization decision engine.

Each check answers allow/deny for one identity against one resource. The
evaluation order is fixed:

1. governing policy disabled -> allow
2. global bypass on -> allow, whatever the identity
3. no identity -> deny (unauthenticated)
4. strict role validation re-reads the stored role for role-dependent checks
5. check-specific rule
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum

from adoption.app.audit.sinks import AuditSink, record_best_effort
from adoption.app.authz.context import IdentityContext, ResourceRef
from adoption.app.authz.ownership import OwnershipResolver
from adoption.app.authz.policy_config import PolicyConfiguration, PolicyName
from adoption.app.db.repositories import IdentityDirectory, StoreUnavailableError
from adoption.app.models.audit import AuditEntry
from adoption.app.models.common import DenialReason, ResourceKind, Role
from adoption.app.models.decision import Decision
from adoption.app.utils.logging import StructuredDecisionLogger
from adoption.app.utils.metrics import PrometheusAuthzMetrics

logger = logging.getLogger(__name__)


class AccessCheck(str, Enum):
    """Named access checks."""

    admin = "admin"
    authenticated = "authenticated"
    org_role = "org_role"
    self_ = "self"
    own_org = "own_org"
    admin_or_self = "admin_or_self"
    org_or_own_org = "org_or_own_org"
    admin_or_org_role = "admin_or_org_role"
    own_pet = "own_pet"
    own_application = "own_application"


# A check is skipped only when every one of its governing policies is off.
GOVERNING_POLICIES: dict[AccessCheck, tuple[PolicyName, ...]] = {
    AccessCheck.admin: (PolicyName.require_admin,),
    AccessCheck.authenticated: (PolicyName.require_authenticated,),
    AccessCheck.org_role: (PolicyName.require_org_role,),
    AccessCheck.self_: (PolicyName.require_self,),
    AccessCheck.own_org: (PolicyName.require_own_org,),
    AccessCheck.admin_or_self: (PolicyName.require_admin, PolicyName.require_self),
    AccessCheck.org_or_own_org: (PolicyName.require_org_role, PolicyName.require_own_org),
    AccessCheck.admin_or_org_role: (PolicyName.require_admin, PolicyName.require_org_role),
    AccessCheck.own_pet: (PolicyName.enforce_resource_ownership,),
    AccessCheck.own_application: (PolicyName.enforce_resource_ownership,),
}

# Checks whose rule reads the caller's role or org
ROLE_DEPENDENT_CHECKS = frozenset(GOVERNING_POLICIES) - {AccessCheck.authenticated, AccessCheck.self_}

SUBJECT_PATH_KEYS = ("user_id", "id")
SUBJECT_KEYS = ("user_id",)
ORG_KEYS = ("org_id",)
PET_PATH_KEYS = ("pet_id", "id")
APPLICATION_PATH_KEYS = ("application_id", "id")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DecisionEngine:
    """Evaluates access checks against injected policy switches.

    Denials are returned as ``Decision`` values, never raised. Collaborator
    failures during ownership or role lookups become a ``store_unavailable``
    denial.
    """

    def __init__(
        self,
        policies: PolicyConfiguration,
        resolver: OwnershipResolver,
        identities: IdentityDirectory | None = None,
        audit: AuditSink | None = None,
        metrics: PrometheusAuthzMetrics | None = None,
        decision_logger: StructuredDecisionLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._policies = policies
        self._resolver = resolver
        self._identities = identities
        self._audit = audit
        self._metrics = metrics or PrometheusAuthzMetrics()
        self._decision_logger = decision_logger or StructuredDecisionLogger()
        self._clock = clock

        self._rules: dict[AccessCheck, Callable[[IdentityContext, ResourceRef], Decision]] = {
            AccessCheck.admin: self._rule_admin,
            AccessCheck.authenticated: self._rule_authenticated,
            AccessCheck.org_role: self._rule_org_role,
            AccessCheck.self_: self._rule_self,
            AccessCheck.own_org: self._rule_own_org,
            AccessCheck.admin_or_self: self._rule_admin_or_self,
            AccessCheck.org_or_own_org: self._rule_org_or_own_org,
            AccessCheck.admin_or_org_role: self._rule_admin_or_org_role,
            AccessCheck.own_pet: self._rule_own_pet,
            AccessCheck.own_application: self._rule_own_application,
        }

    @property
    def policies(self) -> PolicyConfiguration:
        return self._policies

    def check(
        self,
        check: AccessCheck,
        identity: IdentityContext | None,
        resource: ResourceRef | None = None,
    ) -> Decision:
        """Evaluate one access check.

        Args:
            check: Check to evaluate
            identity: Authenticated caller, or None if unauthenticated
            resource: Where resource ids can be read from

        Returns:
            Allow or deny decision
        """
        resource = resource or ResourceRef()
        decision = self._evaluate(check, identity, resource)
        self._observe(decision, identity, resource)
        return decision

    # One entry point per check

    def require_admin(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.admin, identity, resource)

    def require_authenticated(
        self, identity: IdentityContext | None, resource: ResourceRef | None = None
    ) -> Decision:
        return self.check(AccessCheck.authenticated, identity, resource)

    def require_org_role(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.org_role, identity, resource)

    def require_self(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.self_, identity, resource)

    def require_own_org(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.own_org, identity, resource)

    def admin_or_self(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.admin_or_self, identity, resource)

    def org_or_own_org(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.org_or_own_org, identity, resource)

    def admin_or_org_role(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.admin_or_org_role, identity, resource)

    def own_pet(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.own_pet, identity, resource)

    def own_application(self, identity: IdentityContext | None, resource: ResourceRef | None = None) -> Decision:
        return self.check(AccessCheck.own_application, identity, resource)

    # Evaluation

    def _evaluate(
        self, check: AccessCheck, identity: IdentityContext | None, resource: ResourceRef
    ) -> Decision:
        name = check.value

        if not any(self._policies.is_enabled(policy) for policy in GOVERNING_POLICIES[check]):
            return Decision.allow(name, "policy disabled")

        if self._policies.is_enabled(PolicyName.bypass_all):
            return Decision.allow(name, "bypass enabled")

        if identity is None:
            return Decision.deny(name, DenialReason.unauthenticated, "Authentication required")

        if check in ROLE_DEPENDENT_CHECKS:
            stale = self._validate_role(name, identity)
            if stale is not None:
                return stale

        return self._rules[check](identity, resource).model_copy(update={"check": name})

    def _validate_role(self, name: str, identity: IdentityContext) -> Decision | None:
        """Compare the presented role against the identity directory.

        Returns:
            A denial if the presented role is stale, None if it is current or
            validation is off
        """
        if self._identities is None or not self._policies.is_enabled(PolicyName.strict_role_validation):
            return None

        try:
            record = self._identities.get_identity(identity.subject_id)
        except StoreUnavailableError as e:
            logger.warning(f"Identity lookup failed for {identity.subject_id}: {e}")
            return Decision.deny(name, DenialReason.store_unavailable, "Role could not be verified")

        if record is None:
            return Decision.deny(name, DenialReason.unauthenticated, "Unknown subject")

        if record.role != identity.role or record.org_id != identity.org_id:
            return Decision.deny(name, DenialReason.forbidden, "Role claim is stale")

        return None

    def _observe(self, decision: Decision, identity: IdentityContext | None, resource: ResourceRef) -> None:
        self._metrics.inc_decision(decision.check, decision.outcome)
        self._decision_logger.log_decision(decision, identity, resource.path or None)

        if self._audit is None or not self._policies.is_enabled(PolicyName.enable_audit_logging):
            return

        summary = identity.summary() if identity is not None else {}
        details = {"reason": decision.reason}
        if decision.denial is not None:
            details["denial"] = decision.denial.value

        record_best_effort(
            self._audit,
            AuditEntry(
                action="access_check",
                outcome=decision.outcome,
                subject_id=summary.get("subject_id"),
                role=summary.get("role"),
                org_id=summary.get("org_id"),
                policy=decision.check,
                resource_path=resource.path or None,
                details=details,
                timestamp=self._clock(),
            ),
        )

    # Rules. Each runs only for a present identity after the policy gates.

    def _rule_admin(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        if identity.role == Role.admin:
            return Decision.allow(AccessCheck.admin.value)
        return Decision.deny(AccessCheck.admin.value, DenialReason.forbidden, "Admin access required")

    def _rule_authenticated(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        return Decision.allow(AccessCheck.authenticated.value)

    def _rule_org_role(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        if identity.role == Role.org_member:
            return Decision.allow(AccessCheck.org_role.value)
        return Decision.deny(AccessCheck.org_role.value, DenialReason.forbidden, "Org member access required")

    def _rule_self(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        name = AccessCheck.self_.value
        subject_id = resource.lookup(SUBJECT_PATH_KEYS, SUBJECT_KEYS, SUBJECT_KEYS)

        if subject_id is None:
            return Decision.deny(name, DenialReason.missing_resource_reference, "Resource user ID required")

        if subject_id != identity.subject_id:
            return Decision.deny(name, DenialReason.forbidden, "You can only access your own resources")

        return Decision.allow(name)

    def _rule_own_org(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        name = AccessCheck.own_org.value

        if identity.role != Role.org_member:
            return Decision.deny(name, DenialReason.forbidden, "Org member access required")

        if not identity.org_id:
            return Decision.deny(name, DenialReason.forbidden, "User is not associated with an org")

        org_id = resource.lookup(ORG_KEYS, ORG_KEYS, ORG_KEYS)
        if org_id is None:
            return Decision.deny(name, DenialReason.missing_resource_reference, "Resource org ID required")

        if org_id != identity.org_id:
            return Decision.deny(name, DenialReason.forbidden, "You can only access resources from your own org")

        return Decision.allow(name)

    def _rule_admin_or_self(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        if identity.role == Role.admin:
            return Decision.allow(AccessCheck.admin_or_self.value, "admin")
        return self._rule_self(identity, resource)

    def _rule_org_or_own_org(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        name = AccessCheck.org_or_own_org.value

        if identity.role == Role.admin:
            return Decision.allow(name, "admin")

        if identity.role == Role.org_member:
            return self._rule_own_org(identity, resource)

        return Decision.deny(name, DenialReason.forbidden, "Org member access required")

    def _rule_admin_or_org_role(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        name = AccessCheck.admin_or_org_role.value
        if identity.role in (Role.admin, Role.org_member):
            return Decision.allow(name)
        return Decision.deny(name, DenialReason.forbidden, "Admin or org member access required")

    def _rule_own_pet(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        name = AccessCheck.own_pet.value

        pet_id = resource.lookup(PET_PATH_KEYS)
        if pet_id is None:
            return Decision.deny(name, DenialReason.missing_resource_reference, "Pet ID required")

        try:
            owner = self._resolver.resolve_owner(ResourceKind.pet, pet_id)
        except StoreUnavailableError as e:
            logger.warning(f"Ownership lookup failed for pet {pet_id}: {e}")
            return Decision.deny(name, DenialReason.store_unavailable, "Ownership could not be verified")

        if owner is None:
            return Decision.deny(name, DenialReason.not_found, "Pet not found")

        if identity.role == Role.admin:
            return Decision.allow(name, "admin")

        if self._same_org(identity, owner.owner_org_id):
            return Decision.allow(name, "org owns pet")

        return Decision.deny(name, DenialReason.forbidden, "You can only manage pets from your own org")

    def _rule_own_application(self, identity: IdentityContext, resource: ResourceRef) -> Decision:
        name = AccessCheck.own_application.value

        application_id = resource.lookup(APPLICATION_PATH_KEYS)
        if application_id is None:
            return Decision.deny(name, DenialReason.missing_resource_reference, "Application ID required")

        try:
            owner = self._resolver.resolve_owner(ResourceKind.application, application_id)
        except StoreUnavailableError as e:
            logger.warning(f"Ownership lookup failed for application {application_id}: {e}")
            return Decision.deny(name, DenialReason.store_unavailable, "Ownership could not be verified")

        if owner is None:
            return Decision.deny(name, DenialReason.not_found, "Application not found")

        if identity.role == Role.admin:
            return Decision.allow(name, "admin")

        if owner.owner_subject_id == identity.subject_id:
            return Decision.allow(name, "applicant")

        if self._same_org(identity, owner.owner_org_id):
            return Decision.allow(name, "org owns pet")

        return Decision.deny(
            name,
            DenialReason.forbidden,
            "You can only access your own applications or applications for pets from your org",
        )

    @staticmethod
    def _same_org(identity: IdentityContext, owner_org_id: str | None) -> bool:
        return (
            identity.role == Role.org_member
            and identity.org_id is not None
            and owner_org_id is not None
            and identity.org_id == owner_org_id
        )
