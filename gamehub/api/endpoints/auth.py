from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from gamehub.services import auth_service
from gamehub.models import user as user_model
from gamehub.schemas import auth_schemas, user_schemas
from gamehub.api.dependencies import get_current_user, get_db

router = APIRouter()

@router.post("/register", response_model=auth_schemas.MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: auth_schemas.RegisterRequest, db: Session = Depends(get_db)):
    auth_service.register_user(db, request)
    return {"message": "User registered successfully. Please check your email for the verification code."}

@router.post("/verify-email", response_model=auth_schemas.MessageResponse)
async def verify_email(request: auth_schemas.VerifyEmailRequest, db: Session = Depends(get_db)):
    auth_service.verify_email(db, request.email, request.code)
    return {"message": "Email verified successfully"}

@router.post("/resend-verification", response_model=auth_schemas.MessageResponse)
async def resend_verification(request: auth_schemas.EmailRequest, db: Session = Depends(get_db)):
    auth_service.resend_verification(db, request.email)
    return {"message": "Verification code sent"}

@router.post("/login", response_model=auth_schemas.Token)
async def login(request: auth_schemas.LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.authenticate_user(db, request.email, request.password)
    return auth_service.issue_token(user)

@router.post("/google", response_model=auth_schemas.Token)
async def login_with_google(request: auth_schemas.GoogleLoginRequest, db: Session = Depends(get_db)):
    user = auth_service.verify_google_id_token(db, request.token)
    return auth_service.issue_token(user)

@router.post("/forgot-password", response_model=auth_schemas.MessageResponse)
async def forgot_password(request: auth_schemas.EmailRequest, db: Session = Depends(get_db)):
    auth_service.forgot_password(db, request.email)
    return {"message": "Reset password link sent"}

@router.post("/reset-password/{reset_token}", response_model=auth_schemas.MessageResponse)
async def reset_password(reset_token: str, request: auth_schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, reset_token, request.password)
    return {"message": "Password reset successfully"}

@router.get("/me", response_model=user_schemas.UserRead)
async def read_me(current_user: user_model.User = Depends(get_current_user)):
    return current_user

@router.post("/logout", response_model=auth_schemas.MessageResponse)
async def logout(db: Session = Depends(get_db), current_user: user_model.User = Depends(get_current_user)):
    auth_service.logout(db, current_user)
    return {"message": "Logged out"}

@router.put("/update-profile", response_model=user_schemas.UserRead)
async def update_profile(
    update: user_schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user),
):
    return auth_service.update_profile(db, current_user, update)

@router.put("/change-password", response_model=auth_schemas.MessageResponse)
async def change_password(
    request: auth_schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(get_current_user),
):
    auth_service.change_password(db, current_user, request.current_password, request.new_password)
    return {"message": "Password changed successfully"}
