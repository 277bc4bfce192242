"""Role catalog routes."""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from marketportal.core.database import get_db
from marketportal.core.deps import get_current_user
from marketportal.models.role import Role
from marketportal.schemas.role import RoleResponse

router = APIRouter()


@router.get("/roles", response_model=List[RoleResponse])
def list_roles(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user)
):
    """List all active roles for UI consumption."""
    roles = db.query(Role).filter(Role.is_active.is_(True)).order_by(Role.display_name.asc()).all()
    return [
        RoleResponse(
            role_id=role.role_id,
            role_code=role.name,
            display_name=role.display_name,
            is_elevated=role.is_elevated,
            is_active=role.is_active
        )
        for role in roles
    ]
