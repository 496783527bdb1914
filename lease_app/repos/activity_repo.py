from sqlalchemy.exc import SQLAlchemyError

from models.models import Activity


class ActivityRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, activity_data: dict) -> Activity:
        try:
            activity = Activity(**activity_data)
            self.db.add(activity)
            await self.db.commit()
            return activity
        except SQLAlchemyError:
            await self.db.rollback()
            raise
