"""Tests for the role document requirement table."""
from marketportal.core.document_types import DocType
from marketportal.core.role_policy import (
    POLICY_VERSION,
    Combinator,
    RequirementContext,
    RoleRequirementPolicy,
)


def test_market_manager_requires_permit_with_optional_id():
    requirement = RoleRequirementPolicy().requirement_for("market_manager")
    assert requirement.required == (DocType.PERMIT.value,)
    assert requirement.optional == (DocType.ID.value,)
    assert requirement.combinator == Combinator.ALL
    assert requirement.allow_identity_fallback is False


def test_admin_aliases_share_super_admin_rules():
    policy = RoleRequirementPolicy()
    expected = policy.requirement_for("super_admin")
    for alias in ("admin", "Municipal_Admin", "issuer_admin"):
        assert policy.requirement_for(alias) == expected


def test_staff_roles_use_either_with_identity_fallback():
    policy = RoleRequirementPolicy()
    for role in ("inspector", "accountant"):
        requirement = policy.requirement_for(role)
        assert requirement.combinator == Combinator.EITHER
        assert requirement.required == (DocType.ID.value,)
        assert requirement.optional == (DocType.PERMIT.value,)
        assert requirement.allow_identity_fallback is True
        assert requirement.considered == (DocType.ID.value, DocType.PERMIT.value)


def test_vendor_review_requires_id_only():
    requirement = RoleRequirementPolicy().requirement_for("vendor", RequirementContext.REVIEW)
    assert requirement.required == (DocType.ID.value,)


def test_vendor_auto_activation_is_id_only_by_default():
    policy = RoleRequirementPolicy(strict_vendor_auto_activation=False)
    requirement = policy.requirement_for("vendor", RequirementContext.AUTO_ACTIVATION)
    assert requirement.required == (DocType.ID.value,)


def test_strict_vendor_auto_activation_needs_id_and_permit():
    policy = RoleRequirementPolicy(strict_vendor_auto_activation=True)
    auto = policy.requirement_for("vendor", RequirementContext.AUTO_ACTIVATION)
    review = policy.requirement_for("vendor", RequirementContext.REVIEW)
    assert set(auto.required) == {DocType.ID.value, DocType.PERMIT.value}
    assert review.required == (DocType.ID.value,)


def test_unknown_role_demands_id_and_permit():
    requirement = RoleRequirementPolicy().requirement_for("stall_cleaner")
    assert set(requirement.required) == {DocType.ID.value, DocType.PERMIT.value}
    assert requirement.combinator == Combinator.ALL


def test_policy_is_versioned():
    assert RoleRequirementPolicy().version == POLICY_VERSION
