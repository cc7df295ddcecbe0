from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .user_schemas import UserRead

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[UserRead] = None

class TokenData(BaseModel):
    user_id: str
    username: Optional[str] = None

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=20, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=6)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)

class EmailRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=6)

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)

class GoogleLoginRequest(BaseModel):
    token: str # This will be the Google ID token received from the client

class MessageResponse(BaseModel):
    success: bool = True
    message: str
