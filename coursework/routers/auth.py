from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coursework.core.config import ACCESS_TOKEN_EXPIRE
from coursework.core.current_user import get_current_user
from coursework.core.deps import get_db
from coursework.core.security import create_access_token, verify_password
from coursework.models.user import User
from coursework.schemas.auth import LoginRequest, Token
from coursework.schemas.user import UserRead

router = APIRouter()


@router.post(
    "/login",
    response_model=Token,
    responses={
        401: {"description": "Invalid email or password"},
    },
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role},
        expires_delta=ACCESS_TOKEN_EXPIRE,
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
    }


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user
