import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from database import get_store
from schemas import AuthResponse, LoginRequest, ProfileUpdate, RegisterRequest, Token, UserOut

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

router = APIRouter(prefix="/api/auth", tags=["auth"])


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def token_for(user: dict) -> str:
    return create_access_token({"sub": user["id"], "role": user.get("role", "user")})


def get_current_user(token: str = Depends(oauth2_scheme), store=Depends(get_store)) -> dict:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    user = store.get_document("user", user_id)
    if not user:
        raise credentials_exception
    return user


def get_current_admin(current: dict = Depends(get_current_user)) -> dict:
    if current.get("role") != "admin":
        raise HTTPException(403, "Admin access required")
    return current


def authenticate_user(store, identifier: str, password: str) -> Optional[dict]:
    """Look a user up by email, then username; None on any mismatch."""
    user = store.find_one("user", {"email": identifier.lower()}) or store.find_one("user", {"username": identifier})
    if not user:
        # Keep timing similar whether or not the account exists
        pwd_context.dummy_verify()
        return None
    if not verify_password(password, user.get("password_hash", "")):
        return None
    return user


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, store=Depends(get_store)):
    if store.find_one("user", {"email": payload.email}):
        raise HTTPException(400, "Email already registered")
    if store.find_one("user", {"username": payload.username}):
        raise HTTPException(400, "Username already taken")
    data = payload.model_dump(exclude={"password"})
    data["password_hash"] = get_password_hash(payload.password)
    data["role"] = "user"
    data["created_at"] = datetime.now(timezone.utc)
    user_id = store.create_document("user", data)
    user = store.get_document("user", user_id)
    logger.info("Registered user %s (%s)", user["username"], user_id)
    return {"user": user, "token": token_for(user)}


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, store=Depends(get_store)):
    identifier = payload.email or payload.username
    user = authenticate_user(store, identifier, payload.password)
    if not user:
        logger.info("Failed login for %s", identifier)
        raise HTTPException(401, "Invalid credentials")
    return {"user": user, "token": token_for(user)}


@router.post("/token", response_model=Token)
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), store=Depends(get_store)):
    user = authenticate_user(store, form_data.username, form_data.password)
    if not user:
        raise HTTPException(401, "Invalid credentials", headers={"WWW-Authenticate": "Bearer"})
    return Token(access_token=token_for(user))


@router.get("/me", response_model=UserOut)
def me(current: dict = Depends(get_current_user)):
    return current


@router.put("/me", response_model=UserOut)
def update_me(payload: ProfileUpdate, current: dict = Depends(get_current_user), store=Depends(get_store)):
    changes = payload.model_dump(exclude_unset=True)
    email = changes.get("email")
    if email and email != current["email"]:
        if store.find_one("user", {"email": email}):
            raise HTTPException(400, "Email already registered")
    username = changes.get("username")
    if username and username != current["username"]:
        if store.find_one("user", {"username": username}):
            raise HTTPException(400, "Username already taken")
    password = changes.pop("password", None)
    if password:
        changes["password_hash"] = get_password_hash(password)
    # Required fields cannot be blanked
    for field in ("email", "username"):
        if field in changes and changes[field] is None:
            changes.pop(field)
    return store.update_document("user", current["id"], changes)
