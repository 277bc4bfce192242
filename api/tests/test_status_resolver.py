"""Tests for status resolution from document statuses."""
import pytest

from marketportal.core.role_policy import RoleRequirementPolicy
from marketportal.core.status_resolver import merge_document_statuses, resolve_status

policy = RoleRequirementPolicy()
MANAGER = policy.requirement_for("market_manager")
INSPECTOR = policy.requirement_for("inspector")
UNKNOWN = policy.requirement_for("unknown_role")


@pytest.mark.parametrize("docs, expected", [
    ({}, "under_review"),
    ({"permit": "pending"}, "under_review"),
    ({"permit": "approved"}, "active"),
    ({"permit": "rejected"}, "rejected"),
    # Optional id never blocks or activates the ALL combinator
    ({"permit": "approved", "id": "rejected"}, "active"),
    ({"id": "approved"}, "under_review"),
])
def test_all_combinator_for_market_manager(docs, expected):
    assert resolve_status(MANAGER, docs).status == expected


def test_all_combinator_partial_approval_is_provisional():
    assert resolve_status(UNKNOWN, {"id": "approved", "permit": "pending"}).status == "provisional_active"


def test_all_combinator_any_rejected_wins_over_approvals():
    resolution = resolve_status(UNKNOWN, {"id": "approved", "permit": "rejected"})
    assert resolution.status == "rejected"
    assert resolution.required_rejected is True


@pytest.mark.parametrize("docs", [
    {"id": "approved"},
    {"permit": "approved"},
    {"id": "rejected", "permit": "approved"},
    {"id": "approved", "permit": "rejected"},
])
def test_either_activates_on_any_approved_identity_document(docs):
    assert resolve_status(INSPECTOR, docs).status == "active"


@pytest.mark.parametrize("docs", [
    {},
    {"id": "pending"},
    {"id": "rejected"},
    {"id": "rejected", "permit": "rejected"},
    {"other": "approved"},
])
def test_either_leaves_status_unchanged_without_approval(docs):
    resolution = resolve_status(INSPECTOR, docs)
    assert resolution.status is None
    assert resolution.target("under_review") == "under_review"


def test_force_active_overrides_pending_documents():
    resolution = resolve_status(MANAGER, {"permit": "pending"}, force_active=True)
    assert resolution.status == "active"
    assert resolution.forced is True


def test_force_active_refused_when_required_rejected():
    resolution = resolve_status(MANAGER, {"permit": "rejected"}, force_active=True)
    assert resolution.status == "rejected"
    assert resolution.forced is False


def test_force_active_not_flagged_when_already_computed_active():
    resolution = resolve_status(MANAGER, {"permit": "approved"}, force_active=True)
    assert resolution.status == "active"
    assert resolution.forced is False


def test_resolution_is_idempotent():
    docs = {"id": "approved", "permit": "pending"}
    assert resolve_status(UNKNOWN, docs) == resolve_status(UNKNOWN, docs)


def test_role_level_documents_override_identity_documents():
    merged = merge_document_statuses({"id": "rejected"}, {"id": "approved", "permit": "approved"})
    assert merged == {"id": "rejected", "permit": "approved"}


def test_merge_without_identity_documents():
    assert merge_document_statuses({"permit": "pending"}) == {"permit": "pending"}
