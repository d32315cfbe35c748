from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from fleet.core.security import build_user_context, create_access_token, verify_password
from fleet.db import models
from fleet.db.session import get_db

router = APIRouter(tags=["Auth"])


class LoginRequest(BaseModel):
    usuario: str
    senha: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    role: str


def _authenticate(db: Session, username: str, password: str) -> models.User:
    normalized = username.strip().lower()
    user = (
        db.query(models.User)
        .filter(
            or_(
                func.lower(models.User.login) == normalized,
                func.lower(models.User.email) == normalized,
            )
        )
        .order_by(models.User.created_at.desc())
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario ou senha invalidos"
        )
    if user.status != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usuario inativo")
    return user


def _issue_token(user: models.User) -> dict:
    context = build_user_context(user)
    token = create_access_token(
        {"sub": user.id, "role": user.role, "permissions_effective": context["permissions"]}
    )
    return {"access_token": token, "token_type": "bearer", "role": user.role}


@router.post("/auth/login", response_model=LoginResponse, summary="Login JSON (frontend)")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """
    Uso tipico via frontend/script JSON:
    - POST /api/auth/login
    - body: {"usuario": "...", "senha": "..."}
    """
    return _issue_token(_authenticate(db, payload.usuario, payload.senha))


@router.post(
    "/auth/token",
    response_model=LoginResponse,
    summary="Login para Swagger (OAuth2PasswordBearer)",
)
def login_swagger(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Uso via Swagger UI (botao Authorize):
    - tokenUrl aponta para este endpoint.
    - Campos esperados: username / password.
    """
    return _issue_token(_authenticate(db, form_data.username, form_data.password))
