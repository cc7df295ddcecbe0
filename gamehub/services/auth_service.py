import logging
import re
import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from google.oauth2 import id_token
from google.auth.transport import requests as google_requests

from gamehub.core.config import settings
from gamehub.core import security
from gamehub.core.errors import AuthError, EmailDeliveryFailed, Forbidden, InvalidInput, UserExists, UserNotFound
from gamehub.models import user as user_model
from gamehub.models.user_model import UserProfile, UserSettings
from gamehub.schemas import auth_schemas, user_schemas
from gamehub.services import email_service
from gamehub.services.user_service import UserService

logger = logging.getLogger(__name__)


def _code_expiry() -> datetime:
    return datetime.utcnow() + timedelta(minutes=settings.EMAIL_CODE_EXPIRE_MINUTES)


def _send_verification_code(db: Session, user: user_model.User, template_key: str) -> None:
    code = security.generate_verification_code()
    user.email_verification_code = code
    user.email_verification_expire = _code_expiry()
    db.commit()

    if not email_service.send_email(template_key, user.email, {"code": code, "username": user.username}):
        user.email_verification_code = None
        user.email_verification_expire = None
        db.commit()
        raise EmailDeliveryFailed()


def register_user(db: Session, request: auth_schemas.RegisterRequest) -> user_model.User:
    user = UserService(db).create_user(
        username=request.username,
        email=request.email,
        hashed_password=security.get_password_hash(request.password),
    )
    _send_verification_code(db, user, "verify_email")
    logger.info(f"Registered user {user.id}, verification code sent to {user.email}")
    return user


def verify_email(db: Session, email: str, code: str) -> user_model.User:
    user = db.query(user_model.User).filter(
        user_model.User.email == email.lower(),
        user_model.User.email_verification_code == code,
        user_model.User.email_verification_expire > datetime.utcnow(),
    ).first()
    if not user:
        raise InvalidInput("Invalid or expired verification code")

    user.is_email_verified = True
    user.email_verification_code = None
    user.email_verification_expire = None
    db.commit()
    db.refresh(user)
    return user


def resend_verification(db: Session, email: str) -> None:
    user = UserService(db).get_user_by_email(email)
    if not user:
        raise UserNotFound()
    if user.is_email_verified:
        raise InvalidInput("Email already verified")
    _send_verification_code(db, user, "resend_code")


def authenticate_user(db: Session, email: str, password: str) -> user_model.User:
    users = UserService(db)
    user = users.get_user_by_email(email)
    if not user:
        raise AuthError("Invalid credentials")
    if not user.is_email_verified:
        raise AuthError("Please verify your email first")
    if UserProfile.model_validate(user).ban_active():
        raise Forbidden(f"Account banned. Reason: {user.ban_reason}")
    if not security.verify_password(password, user.hashed_password):
        raise AuthError("Invalid credentials")

    return users.set_presence(user, online=True)


def issue_token(user: user_model.User) -> auth_schemas.Token:
    access_token = security.create_access_token(
        data={"sub": user.id, "username": user.username},
        expires_delta=timedelta(minutes=security.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return auth_schemas.Token(access_token=access_token, user=user_schemas.UserRead.model_validate(user))


def _username_from(email: str, users: UserService) -> str:
    base = re.sub(r"[^A-Za-z0-9_]", "", email.split("@")[0])[:15] or "player"
    if len(base) < 3:
        base = f"player_{base}"
    username = base
    while users.get_user_by_username(username):
        username = f"{base}{secrets.randbelow(10000)}"
    return username


def verify_google_id_token(db: Session, token: str) -> user_model.User:
    try:
        idinfo = id_token.verify_oauth2_token(token, google_requests.Request(), settings.GOOGLE_CLIENT_ID)
    except ValueError as e:
        logger.info(f"Rejected Google ID token: {e}")
        raise AuthError("Invalid Google ID token")

    email = idinfo.get("email")
    google_id = idinfo.get("sub")
    if not email or not google_id:
        raise InvalidInput("Email or Google ID missing from token payload")

    users = UserService(db)
    user = users.get_user_by_google_id(google_id)
    if user is None:
        user = users.get_user_by_email(email)
        if user is not None:
            # Existing password account, link it to the Google identity
            user.google_id = google_id
            user.is_email_verified = True
            users.save(user)
        else:
            user = users.create_user(
                username=_username_from(email, users),
                email=email,
                google_id=google_id,
                is_email_verified=True,
                avatar=idinfo.get("picture"),
            )

    if UserProfile.model_validate(user).ban_active():
        raise Forbidden(f"Account banned. Reason: {user.ban_reason}")
    return users.set_presence(user, online=True)


def forgot_password(db: Session, email: str) -> None:
    user = UserService(db).get_user_by_email(email)
    if not user:
        raise UserNotFound()

    reset_token = security.generate_reset_token()
    user.password_reset_token = security.hash_reset_token(reset_token)
    user.password_reset_expire = _code_expiry()
    db.commit()

    reset_url = f"{settings.CLIENT_URL}/reset-password/{reset_token}"
    if not email_service.send_email("reset_password", user.email, {"reset_url": reset_url}):
        user.password_reset_token = None
        user.password_reset_expire = None
        db.commit()
        raise EmailDeliveryFailed()


def reset_password(db: Session, reset_token: str, password: str) -> user_model.User:
    users = UserService(db)
    user = users.get_user_by_reset_token(security.hash_reset_token(reset_token))
    if not user:
        raise InvalidInput("Invalid or expired reset token")

    user.hashed_password = security.get_password_hash(password)
    user.password_reset_token = None
    user.password_reset_expire = None
    return users.save(user)


def change_password(db: Session, user: user_model.User, current_password: str, new_password: str) -> None:
    if not security.verify_password(current_password, user.hashed_password):
        raise InvalidInput("Current password is incorrect")
    user.hashed_password = security.get_password_hash(new_password)
    UserService(db).save(user)


def update_profile(db: Session, user: user_model.User, update: user_schemas.ProfileUpdate) -> user_model.User:
    users = UserService(db)
    if update.username and update.username != user.username:
        if users.get_user_by_username(update.username):
            raise UserExists("Username already taken")
        user.username = update.username
    if update.avatar:
        user.avatar = update.avatar
    if update.settings:
        current = UserSettings.model_validate(user.settings or {})
        known = {k: v for k, v in update.settings.items() if k in UserSettings.model_fields}
        user.settings = current.model_copy(update=known).model_dump()
    return users.save(user)


def logout(db: Session, user: user_model.User) -> None:
    UserService(db).set_presence(user, online=False)
