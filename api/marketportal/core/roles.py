"""Role normalization helpers and canonical mappings."""
from __future__ import annotations

import enum
from typing import Optional, Dict


class RoleCode(str, enum.Enum):
    VENDOR = "vendor"
    MARKET_MANAGER = "market_manager"
    ACCOUNTANT = "accountant"
    INSPECTOR = "inspector"
    SUPER_ADMIN = "super_admin"


class LegacyRole(str, enum.Enum):
    """Values of the single-role mirror column on users."""
    VENDOR = "vendor"
    ADMIN = "admin"


ROLE_CODE_TO_DISPLAY: Dict[str, str] = {
    RoleCode.VENDOR.value: "Vendor",
    RoleCode.MARKET_MANAGER.value: "Market Manager",
    RoleCode.ACCOUNTANT.value: "Accountant",
    RoleCode.INSPECTOR.value: "Inspector",
    RoleCode.SUPER_ADMIN.value: "Super Admin",
}

# Administrative aliases collapse into the super admin bucket.
ROLE_ALIASES: Dict[str, str] = {
    "admin": RoleCode.SUPER_ADMIN.value,
    "administrator": RoleCode.SUPER_ADMIN.value,
    "municipal_admin": RoleCode.SUPER_ADMIN.value,
    "issuer_admin": RoleCode.SUPER_ADMIN.value,
    "super admin": RoleCode.SUPER_ADMIN.value,
    "market manager": RoleCode.MARKET_MANAGER.value,
}

ELEVATED_ROLE_CODES = frozenset({
    RoleCode.MARKET_MANAGER.value,
    RoleCode.ACCOUNTANT.value,
    RoleCode.INSPECTOR.value,
    RoleCode.SUPER_ADMIN.value,
})

# Roles a market manager may hand out for the markets they manage.
STAFF_ROLE_CODES = frozenset({
    RoleCode.INSPECTOR.value,
    RoleCode.ACCOUNTANT.value,
})

# Roles anyone may request for their own account.
SELF_SERVICE_ROLE_CODES = frozenset({
    RoleCode.VENDOR.value,
    RoleCode.MARKET_MANAGER.value,
})


def normalize_role_code(value: str | None) -> Optional[str]:
    if not value:
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    if normalized in ROLE_ALIASES:
        return ROLE_ALIASES[normalized]
    underscored = normalized.replace(" ", "_").replace("-", "_")
    if underscored in ROLE_CODE_TO_DISPLAY:
        return underscored
    return ROLE_ALIASES.get(underscored)


def get_role_display(role_code: str | None, fallback: str | None = None) -> Optional[str]:
    if not role_code:
        return fallback
    return ROLE_CODE_TO_DISPLAY.get(role_code, fallback)


def legacy_role_for(role_code: str | None) -> str:
    """Coarse bucket written to users.role for older authorization checks."""
    if normalize_role_code(role_code) == RoleCode.VENDOR.value:
        return LegacyRole.VENDOR.value
    return LegacyRole.ADMIN.value
