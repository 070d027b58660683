from typing import Optional, Sequence

from sqlmodel import Session, select

from app.core.errors import ConflictError, NotFoundError
from app.core.security import hash_password
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.user import UserOut


def to_user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        roles=list(user.roles),
        is_active=user.is_active,
        is_blocked=user.is_blocked,
    )


def find_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == email)).first()


def get_user_by_id(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError('User not found', detail={'user_id': user_id})
    return user


def get_user_by_email(session: Session, email: str) -> User:
    user = find_user_by_email(session, email)
    if user is None:
        raise NotFoundError('User not found')
    return user


def lock_user_row(session: Session, user_id: int) -> Optional[User]:
    """Select the user row FOR UPDATE inside the current transaction.

    Serializes credential writes for one user across processes on databases
    with row locks; SQLite ignores the clause.
    """
    return session.exec(
        select(User).where(User.id == user_id).with_for_update()
    ).first()


def create_user(
    session: Session,
    email: str,
    password: str,
    roles: Sequence[str] = (UserRole.USER.value,),
) -> User:
    if find_user_by_email(session, email) is not None:
        raise ConflictError('Email already registered')
    user = User(email=email, hashed_password=hash_password(password), roles=list(roles))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def is_admin(user: User) -> bool:
    return UserRole.ADMIN.value in (user.roles or [])
