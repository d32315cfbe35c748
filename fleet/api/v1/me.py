from fastapi import APIRouter, Depends

from fleet.core.security import build_user_context, get_current_user
from fleet.db import models

router = APIRouter(tags=["Usuario"])


@router.get("/me")
def get_me(current_user: models.User = Depends(get_current_user)):
    context = build_user_context(current_user)
    return {
        "user": {
            "id": current_user.id,
            "name": current_user.name,
            "login": current_user.login,
            "email": current_user.email,
            "role": current_user.role,
            "status": current_user.status,
        },
        "permissions": context["permissions"],
    }
