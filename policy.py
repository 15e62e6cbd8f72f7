from sqlalchemy.orm import Query

from errors import AccessDenied
from models import Role, Task, User


class AuthorizationPolicy:
    """Ownership rules for todos: owners see their own, admins see everything."""

    def is_admin(self, user: User) -> bool:
        return user.role == Role.ADMIN

    def can_access(self, task: Task, user: User) -> bool:
        return self.is_admin(user) or task.user_id == user.id

    def enforce(self, task: Task, user: User) -> None:
        if not self.can_access(task, user):
            raise AccessDenied()

    def scope(self, query: Query, user: User) -> Query:
        if self.is_admin(user):
            return query
        return query.filter(Task.user_id == user.id)
