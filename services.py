import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

import dates
from errors import (
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredential,
    TaskNotFound,
    UserNotFound,
    ValidationError,
)
from models import Priority, Role, Task, User
from policy import AuthorizationPolicy
from security import authenticate, hash_password, issue_token, verify_password
from stores import TaskStore, UserStore

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000


class AccountService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserStore(db)

    def register(self, username: str, email: str, password: str,
                 first_name: Optional[str] = None, last_name: Optional[str] = None) -> Tuple[str, User]:
        if self.users.exists_by_username(username):
            raise DuplicateUsername(username)
        if self.users.exists_by_email(email):
            raise DuplicateEmail(email)

        user = User(
            username=username,
            email=email,
            password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=Role.USER,
            enabled=True,
            account_non_expired=True,
            account_non_locked=True,
            credentials_non_expired=True,
        )
        user = self.users.add(user)
        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return issue_token(user.username), user

    def login(self, username: str, password: str) -> Tuple[str, User]:
        user = authenticate(self.db, username, password)
        logger.info("User %s logged in", user.username)
        return issue_token(user.username), user

    def get_current_user(self, identity: str) -> User:
        user = self.users.get_by_username(identity)
        if user is None:
            raise UserNotFound(identity)
        return user

    def update_profile(self, identity: str, patch: dict) -> User:
        """Apply the keys present in ``patch``.

        Recognised keys: email, first_name, last_name, current_password,
        new_password. A new password is only stored once the current one
        verifies.
        """
        user = self.get_current_user(identity)

        email = patch.get("email")
        if email is not None and email != user.email:
            other = self.users.get_by_email(email)
            if other is not None and other.id != user.id:
                raise DuplicateEmail(email)
            user.email = email

        if patch.get("first_name") is not None:
            user.first_name = patch["first_name"]
        if patch.get("last_name") is not None:
            user.last_name = patch["last_name"]

        new_password = patch.get("new_password")
        if new_password is not None:
            current = patch.get("current_password")
            if current is None or not verify_password(current, user.password):
                self.db.rollback()
                raise InvalidCredential()
            user.password = hash_password(new_password)

        user = self.users.save(user)
        logger.info("Updated profile for user %s", user.username)
        return user

    def delete_account(self, identity: str) -> None:
        user = self.get_current_user(identity)
        self.users.delete(user)
        logger.info("Deleted account %s", identity)

    def ensure_admin(self, username: str, email: str, password: str) -> User:
        """Create the configured admin account, or promote an existing one."""
        user = self.users.get_by_username(username)
        if user is None:
            user = User(
                username=username,
                email=email,
                password=hash_password(password),
                first_name="Admin",
                last_name="User",
                role=Role.ADMIN,
            )
            user = self.users.add(user)
            logger.info("Created admin account %s", username)
        elif user.role != Role.ADMIN:
            user.role = Role.ADMIN
            user = self.users.save(user)
            logger.info("Promoted %s to admin", username)
        return user


def _check_title(title) -> str:
    if title is None or not str(title).strip():
        raise ValidationError("Title is mandatory")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
    return title


def _check_description(description):
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters")
    return description


def _check_priority(priority) -> Priority:
    if isinstance(priority, Priority):
        return priority
    try:
        return Priority(str(priority).upper())
    except ValueError:
        raise ValidationError(f"Invalid priority: {priority}. Expected one of LOW, MEDIUM, HIGH")


class TaskService:
    """Todo operations on behalf of an explicitly passed acting user."""

    def __init__(self, db: Session, policy: Optional[AuthorizationPolicy] = None):
        self.db = db
        self.tasks = TaskStore(db)
        self.policy = policy or AuthorizationPolicy()

    def _scoped(self, actor: User):
        return self.policy.scope(self.tasks.query(), actor)

    def _load(self, actor: User, task_id: int) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        self.policy.enforce(task, actor)
        return task

    def list(self, actor: User, order_by_priority: bool = False) -> List[Task]:
        logger.debug("Listing todos for %s (admin=%s, by priority=%s)",
                     actor.username, self.policy.is_admin(actor), order_by_priority)
        query = self._scoped(actor)
        if order_by_priority:
            return self.tasks.order_by_priority(query).all()
        return query.order_by(Task.id).all()

    def get_by_id(self, actor: User, task_id: int) -> Task:
        logger.debug("Fetching todo %s for %s", task_id, actor.username)
        return self._load(actor, task_id)

    def list_by_completed(self, actor: User, completed: bool) -> List[Task]:
        return self._scoped(actor).filter(Task.completed == completed).order_by(Task.id).all()

    def list_by_priority(self, actor: User, priority) -> List[Task]:
        priority = _check_priority(priority)
        return self._scoped(actor).filter(Task.priority == priority).order_by(Task.id).all()

    def search_by_title(self, actor: User, text: str) -> List[Task]:
        logger.debug("Searching todos of %s by title containing %r", actor.username, text)
        return (
            self._scoped(actor)
            .filter(Task.title.icontains(text or "", autoescape=True))
            .order_by(Task.id)
            .all()
        )

    def list_overdue(self, actor: User, now: Optional[datetime] = None) -> List[Task]:
        now = now or datetime.now()
        return (
            self._scoped(actor)
            .filter(Task.completed.is_(False), Task.due_date.isnot(None), Task.due_date < now)
            .order_by(Task.due_date, Task.id)
            .all()
        )

    def stats(self, actor: User) -> dict:
        scoped = self._scoped(actor)
        total = scoped.count()
        completed = scoped.filter(Task.completed.is_(True)).count()
        return {
            "total": total,
            "completed": completed,
            "pending": total - completed,
            "high_priority": scoped.filter(Task.priority == Priority.HIGH).count(),
            "medium_priority": scoped.filter(Task.priority == Priority.MEDIUM).count(),
            "low_priority": scoped.filter(Task.priority == Priority.LOW).count(),
        }

    def create(self, actor: User, title: str, description: Optional[str] = None,
               completed: Optional[bool] = None, priority=None, due_date=None) -> Task:
        task = Task(
            title=_check_title(title),
            description=_check_description(description),
            completed=bool(completed) if completed is not None else False,
            priority=_check_priority(priority) if priority is not None else Priority.MEDIUM,
            due_date=dates.parse_datetime(due_date),
            user_id=actor.id,
        )
        task = self.tasks.add(task)
        logger.info("Created todo %s for %s", task.id, actor.username)
        return task

    def update(self, actor: User, task_id: int, patch: dict) -> Task:
        """Apply the non-None values of ``patch`` (title, description, completed, priority, due_date)."""
        task = self._load(actor, task_id)

        if patch.get("title") is not None:
            task.title = _check_title(patch["title"])
        if patch.get("description") is not None:
            task.description = _check_description(patch["description"])
        if patch.get("completed") is not None:
            task.completed = bool(patch["completed"])
        if patch.get("priority") is not None:
            task.priority = _check_priority(patch["priority"])
        if patch.get("due_date") is not None:
            task.due_date = dates.parse_datetime(patch["due_date"])

        task.updated_at = datetime.now()
        task = self.tasks.save(task)
        logger.info("Updated todo %s", task.id)
        return task

    def set_completed(self, actor: User, task_id: int, value: bool) -> Task:
        task = self._load(actor, task_id)
        task.completed = value
        task.updated_at = datetime.now()
        task = self.tasks.save(task)
        logger.info("Marked todo %s as %s", task.id, "completed" if value else "incomplete")
        return task

    def toggle(self, actor: User, task_id: int) -> Task:
        task = self._load(actor, task_id)
        task = self.tasks.flip_completed(task)
        logger.info("Toggled todo %s to completed=%s", task.id, task.completed)
        return task

    def delete(self, actor: User, task_id: int) -> None:
        task = self._load(actor, task_id)
        self.tasks.delete(task)
        logger.info("Deleted todo %s", task_id)

    def delete_all_completed(self, actor: User) -> int:
        query = self._scoped(actor).filter(Task.completed.is_(True))
        count = self.tasks.delete_matching(query)
        logger.info("Deleted %d completed todos for %s", count, actor.username)
        return count
