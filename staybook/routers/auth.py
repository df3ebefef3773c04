from fastapi import APIRouter, Depends

from ..auth import Identity, get_current_identity
from ..schemas import IdentityOut


router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=IdentityOut)
def me(identity: Identity = Depends(get_current_identity)):
    return IdentityOut(id=identity.id, role=identity.role, name=identity.name, phone=identity.phone)
