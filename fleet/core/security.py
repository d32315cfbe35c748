from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from fleet.core.config import settings
from fleet.db import models
from fleet.db.session import get_db

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

ADMIN_ROLE = "ADMIN"
MODULES = (
    "dashboard",
    "vehicles",
    "drivers",
    "refuelings",
    "refrigeration",
    "suppliers",
    "companies",
    "users",
)
ACTIONS = ("view", "edit", "delete")
PERMISSIONS_CATALOG = tuple(
    f"{module}.{action}"
    for module in MODULES
    for action in (("view",) if module == "dashboard" else ACTIONS)
)


def get_user_permissions(user: models.User) -> set[str]:
    if user.role == ADMIN_ROLE:
        return set(PERMISSIONS_CATALOG)
    return {code for code in (user.permissions or []) if code in PERMISSIONS_CATALOG}


def build_user_context(user: models.User) -> dict[str, Any]:
    return {
        "role": user.role,
        "permissions": sorted(get_user_permissions(user)),
    }


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        return False


def get_password_hash(password: str) -> str:
    if not isinstance(password, str):
        raise ValueError("Senha invalida para hash: envie somente a senha em texto do usuario.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Senha maior que 72 bytes em UTF-8.")
    return pwd_context.hash(password)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Credenciais invalidas",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise credentials_exception
    if user.status != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usuario inativo")
    return user


def require_permission(permission_code: str):
    def _dependency(user: models.User = Depends(get_current_user)) -> models.User:
        if permission_code not in get_user_permissions(user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permissao negada")
        return user

    return _dependency
