# camrent/api/v1/endpoints/auth.py
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger

from camrent.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from camrent.core.rate_limiter import limiter
from camrent.core.security import (
    create_access_token,
    verify_password,
    get_current_active_user,
    get_password_hash,
)
from camrent.core.utils import to_response
from camrent.models.token import Token
from camrent.models.user import User, UserRole

router = APIRouter(tags=["Authentication"])


# Path: /api/v1/auth/token
@router.post("/token", response_model=Token)
@limiter.limit("20/minute")
async def login_for_access_token(request: Request, form_data: OAuth2PasswordRequestForm = Depends()):
    user = await User.find_one(User.username == form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login for '{form_data.username}'.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")

    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"access_token": access_token, "token_type": "bearer"}


# Path: /api/v1/auth/register
@router.post("/register", response_model=User.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
async def register_user(request: Request, user_in: User.Create):
    if await User.find_one(User.username == user_in.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
    if user_in.email and await User.find_one(User.email == user_in.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user_obj = User(
        username=user_in.username,
        email=user_in.email,
        full_name=user_in.full_name,
        contact_number=user_in.contact_number,
        hashed_password=get_password_hash(user_in.password),
        disabled=False,
        role=UserRole.USER,
    )
    await user_obj.insert()
    logger.info(f"Registered user '{user_obj.username}'.")
    return to_response(user_obj, User.Response)


# Path: /api/v1/auth/me
@router.get("/me", response_model=User.Response)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return to_response(current_user, User.Response)
