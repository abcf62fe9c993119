from sqlalchemy import select
from sqlalchemy.orm import Session
from marketplace.data.models.user import UserModel

class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def get_users(self, user_ids) -> dict[int, UserModel]:
        ids = set(user_ids)
        if not ids:
            return {}
        rows = self.db.execute(select(UserModel).where(UserModel.id.in_(ids))).scalars()
        return {u.id: u for u in rows}

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
