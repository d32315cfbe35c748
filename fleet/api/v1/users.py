from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fleet.core.security import ADMIN_ROLE, PERMISSIONS_CATALOG, get_password_hash, require_permission
from fleet.db import models
from fleet.db.session import get_db

router = APIRouter(tags=["Usuarios"])

ROLES = {ADMIN_ROLE, "OPERADOR"}


class UserCreate(BaseModel):
    nome: str = Field(..., min_length=2)
    login: str = Field(..., min_length=3)
    email: str | None = None
    senha: str = Field(..., min_length=6)
    role: str = "OPERADOR"
    status: str = "active"
    permissions: list[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    nome: str | None = None
    email: str | None = None
    senha: str | None = None
    role: str | None = None
    status: str | None = None
    permissions: list[str] | None = None


def _serialize_user(user: models.User) -> dict:
    return {
        "id": user.id,
        "nome": user.name,
        "login": user.login,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "permissions": list(user.permissions or []),
        "created_at": user.created_at.isoformat(),
    }


def _validate_access(role: str | None, permissions: list[str] | None) -> None:
    if role is not None and role not in ROLES:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Perfil invalido")
    unknown = sorted(set(permissions or []) - set(PERMISSIONS_CATALOG))
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Permissoes desconhecidas: {', '.join(unknown)}",
        )


@router.get("/users")
def list_users(
    current_user: models.User = Depends(require_permission("users.view")),
    db: Session = Depends(get_db),
):
    users = db.query(models.User).order_by(models.User.name.asc()).all()
    return {"users": [_serialize_user(user) for user in users]}


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    current_user: models.User = Depends(require_permission("users.edit")),
    db: Session = Depends(get_db),
):
    _validate_access(payload.role, payload.permissions)
    login = payload.login.strip().lower()
    if db.query(models.User).filter(models.User.login == login).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Login ja cadastrado")
    try:
        password_hash = get_password_hash(payload.senha)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    user = models.User(
        name=payload.nome,
        login=login,
        email=payload.email,
        password_hash=password_hash,
        role=payload.role,
        status=payload.status,
        permissions=sorted(set(payload.permissions)),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"user": _serialize_user(user)}


@router.patch("/users/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: models.User = Depends(require_permission("users.edit")),
    db: Session = Depends(get_db),
):
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario nao encontrado")
    _validate_access(payload.role, payload.permissions)
    if payload.nome is not None:
        user.name = payload.nome
    if payload.email is not None:
        user.email = payload.email
    if payload.role is not None:
        user.role = payload.role
    if payload.status is not None:
        user.status = payload.status
    if payload.permissions is not None:
        user.permissions = sorted(set(payload.permissions))
    if payload.senha:
        try:
            user.password_hash = get_password_hash(payload.senha)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    db.commit()
    db.refresh(user)
    return {"user": _serialize_user(user)}
