"""
Document requirements per role.

Every call site (admin review, document approval, resubmission) asks the same
``RoleRequirementPolicy`` instance, so the rules cannot drift apart. The table
is versioned; bump ``POLICY_VERSION`` whenever a rule changes so audit entries
can be traced back to the rule set that produced them.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Tuple

from marketportal.core.document_types import DocType
from marketportal.core.roles import RoleCode, normalize_role_code

POLICY_VERSION = 1


class Combinator(str, enum.Enum):
    ALL = "all"
    EITHER = "either"


class RequirementContext(str, enum.Enum):
    """Which workflow path is asking; only vendor rules differ between them."""
    REVIEW = "review"
    AUTO_ACTIVATION = "auto_activation"


@dataclass(frozen=True)
class RoleRequirement:
    required: Tuple[str, ...]
    optional: Tuple[str, ...] = ()
    combinator: Combinator = Combinator.ALL
    allow_identity_fallback: bool = False

    @property
    def considered(self) -> Tuple[str, ...]:
        return self.required + tuple(t for t in self.optional if t not in self.required)


ROLE_REQUIREMENTS: Dict[str, RoleRequirement] = {
    RoleCode.SUPER_ADMIN.value: RoleRequirement(
        required=(DocType.PERMIT.value,),
        optional=(DocType.ID.value,),
    ),
    RoleCode.MARKET_MANAGER.value: RoleRequirement(
        required=(DocType.PERMIT.value,),
        optional=(DocType.ID.value,),
    ),
    RoleCode.VENDOR.value: RoleRequirement(
        required=(DocType.ID.value,),
        allow_identity_fallback=True,
    ),
    RoleCode.INSPECTOR.value: RoleRequirement(
        required=(DocType.ID.value,),
        optional=(DocType.PERMIT.value,),
        combinator=Combinator.EITHER,
        allow_identity_fallback=True,
    ),
    RoleCode.ACCOUNTANT.value: RoleRequirement(
        required=(DocType.ID.value,),
        optional=(DocType.PERMIT.value,),
        combinator=Combinator.EITHER,
        allow_identity_fallback=True,
    ),
}

STRICT_VENDOR_REQUIREMENT = RoleRequirement(
    required=(DocType.ID.value, DocType.PERMIT.value),
    allow_identity_fallback=True,
)

# Unknown roles demand the most evidence.
UNKNOWN_ROLE_REQUIREMENT = RoleRequirement(
    required=(DocType.ID.value, DocType.PERMIT.value),
)


class RoleRequirementPolicy:
    """Pure lookup from role name to its document requirement."""

    version = POLICY_VERSION

    def __init__(self, strict_vendor_auto_activation: bool = False):
        self.strict_vendor_auto_activation = strict_vendor_auto_activation

    def requirement_for(
        self,
        role_name: str | None,
        context: RequirementContext = RequirementContext.REVIEW,
    ) -> RoleRequirement:
        role_code = normalize_role_code(role_name)
        if (
            role_code == RoleCode.VENDOR.value
            and context == RequirementContext.AUTO_ACTIVATION
            and self.strict_vendor_auto_activation
        ):
            return STRICT_VENDOR_REQUIREMENT
        return ROLE_REQUIREMENTS.get(role_code, UNKNOWN_ROLE_REQUIREMENT)


def default_policy() -> RoleRequirementPolicy:
    from marketportal.core.config import settings

    return RoleRequirementPolicy(
        strict_vendor_auto_activation=settings.STRICT_VENDOR_AUTO_ACTIVATION
    )
