from uuid import UUID

from sqlalchemy.orm import Session

from app.models.user import User, UserRole


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: UUID) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_username(self, username: str) -> User | None:
        return self.db.query(User).filter(User.username == username).first()

    def create(
        self,
        *,
        username: str,
        role: UserRole = UserRole.RESTAURANT_OWNER,
        full_name: str | None = None,
        email: str | None = None,
    ) -> User:
        user = User(username=username, role=role.value, full_name=full_name, email=email)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
