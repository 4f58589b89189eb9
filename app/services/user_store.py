import uuid

from sqlalchemy.orm import Session

from app.models.user import User


class UserStore:
    """SQLAlchemy-backed credential store. Callers pass normalized emails."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str | uuid.UUID) -> User | None:
        if isinstance(user_id, str):
            try:
                user_id = uuid.UUID(user_id)
            except ValueError:
                return None
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def get_by_google_id(self, google_id: str) -> User | None:
        return self.db.query(User).filter(User.google_id == google_id).first()

    def get_by_refresh_token(self, token: str) -> User | None:
        return self.db.query(User).filter(User.refresh_token == token).first()

    def save(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
