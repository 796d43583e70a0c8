import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from config import Config
from errors import Conflict, Unauthorized
from models import AuthToken, User, utcnow
from schemas import UserCreate, as_utc

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def issue_token(db: Session, user: User, config: Config) -> str:
    token = AuthToken(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=utcnow() + timedelta(hours=config.TOKEN_LIFETIME_HOURS),
    )
    db.add(token)
    db.commit()
    return token.token


def register_user(db: Session, data: UserCreate) -> User:
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User already exists with this email")

    user = User(name=data.name, email=email, password_hash=hash_password(data.password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with another registration for the same email
        db.rollback()
        raise Conflict("User already exists with this email")
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise Unauthorized("Invalid email or password")
    return user


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def user_from_authorization(db: Session, authorization: Optional[str]) -> User:
    """Resolve an ``Authorization: Bearer <token>`` header to its user."""
    token = _bearer_token(authorization)
    if token is None:
        raise Unauthorized("Unauthorized")

    record = db.query(AuthToken).filter(AuthToken.token == token).first()
    if record is None:
        logger.warning("Rejected unknown token")
        raise Unauthorized("Invalid token")

    expires_at = as_utc(record.expires_at)
    if expires_at <= utcnow():
        logger.warning("Rejected expired token for user %s", record.user_id)
        raise Unauthorized("Token expired")
    return record.user


def get_default_owner(db: Session, config: Config) -> User:
    """The single owner used when the app runs in anonymous mode."""
    email = config.DEFAULT_OWNER_EMAIL.lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user

    user = User(
        name="Default User",
        email=email,
        # nobody can log in with this
        password_hash=hash_password(secrets.token_urlsafe(32)),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(User).filter(User.email == email).one()
    db.refresh(user)
    logger.info("Created default owner %s", user.id)
    return user
