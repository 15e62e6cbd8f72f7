import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, not_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, Query

from errors import Conflict
from models import User, Task, Priority

logger = logging.getLogger(__name__)


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def exists_by_username(self, username: str) -> bool:
        return self.get_by_username(username) is not None

    def exists_by_email(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def add(self, user: User) -> User:
        self.db.add(user)
        return self.save(user)

    def save(self, user: User) -> User:
        try:
            self.db.commit()
        except IntegrityError:
            # lost a race against another registration/update
            self.db.rollback()
            raise Conflict("Username or email already exists")
        self.db.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.db.delete(user)
        self.db.commit()


class TaskStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, task_id: int) -> Optional[Task]:
        return self.db.get(Task, task_id)

    def query(self) -> Query:
        return self.db.query(Task)

    def add(self, task: Task) -> Task:
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def save(self, task: Task) -> Task:
        self.db.commit()
        self.db.refresh(task)
        return task

    def delete(self, task: Task) -> None:
        self.db.delete(task)
        self.db.commit()

    def flip_completed(self, task: Task) -> Task:
        """Negate ``completed`` in a single UPDATE and return the fresh row."""
        self.db.query(Task).filter(Task.id == task.id).update(
            {Task.completed: not_(Task.completed), Task.updated_at: datetime.now()},
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(task)
        return task

    def delete_matching(self, query: Query) -> int:
        count = query.delete(synchronize_session=False)
        self.db.commit()
        return count

    @staticmethod
    def order_by_priority(query: Query) -> Query:
        """HIGH, MEDIUM, LOW; then due date ascending with nulls last; then creation time."""
        rank = case(
            (Task.priority == Priority.HIGH, 1),
            (Task.priority == Priority.MEDIUM, 2),
            else_=3,
        )
        return query.order_by(
            rank,
            Task.due_date.is_(None),
            Task.due_date.asc(),
            Task.created_at.asc(),
            Task.id.asc(),
        )
