from uuid import UUID

from sqlalchemy.orm import Session

from app.models.notification_preference import NotificationPreference
from app.schemas.notification import NotificationPreferenceUpdate


class NotificationPreferenceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self, user_id: UUID) -> NotificationPreference:
        pref = (
            self.db.query(NotificationPreference)
            .filter(NotificationPreference.user_id == user_id)
            .first()
        )
        if pref is None:
            pref = NotificationPreference(user_id=user_id)
            self.db.add(pref)
            self.db.commit()
            self.db.refresh(pref)
        return pref

    def update(self, user_id: UUID, data: NotificationPreferenceUpdate) -> NotificationPreference:
        pref = self.get_or_create(user_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(pref, key, value)
        self.db.commit()
        self.db.refresh(pref)
        return pref
