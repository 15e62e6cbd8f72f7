import logging
from contextlib import asynccontextmanager
from datetime import datetime
from http import HTTPStatus
from typing import List

from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import schemas
from database import Base, SessionLocal, engine, get_db
from errors import TodoAppError, TokenInvalid, UserNotFound
from logging_setup import setup_logging
from models import User
from security import verify_token
from services import AccountService, TaskService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL, config.LOG_FILE or None)
    Base.metadata.create_all(bind=engine)
    if config.ADMIN_USERNAME and config.ADMIN_PASSWORD:
        db = SessionLocal()
        try:
            AccountService(db).ensure_admin(config.ADMIN_USERNAME, config.ADMIN_EMAIL, config.ADMIN_PASSWORD)
        finally:
            db.close()
    logger.info("%s started", config.SERVICE_NAME)
    yield


# Initialize app
app = FastAPI(title="Todo API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error responses
def error_body(status_code: int, message: str) -> dict:
    return {
        "timestamp": datetime.now().isoformat(),
        "status": status_code,
        "error": HTTPStatus(status_code).phrase,
        "message": message,
    }


@app.exception_handler(TodoAppError)
def handle_app_error(request: Request, exc: TodoAppError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, exc.message), headers=headers)


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        details.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return JSONResponse(status_code=400, content=error_body(400, "; ".join(details) or "Validation failed"))


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
def handle_store_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(500, "An unexpected error occurred"))


# Current user
def get_current_identity(token: str = Depends(oauth2_scheme)) -> str:
    return verify_token(token)


def get_current_user(identity: str = Depends(get_current_identity), db: Session = Depends(get_db)) -> User:
    # a token whose account is gone no longer authenticates anyone
    try:
        return AccountService(db).get_current_user(identity)
    except UserNotFound:
        raise TokenInvalid()


def auth_response(token: str, user: User) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        token=token,
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.value,
    )


@app.get("/health")
def health():
    return {"status": "UP", "service": config.SERVICE_NAME}


# Auth
@app.post("/auth/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(request: schemas.RegisterRequest, db: Session = Depends(get_db)):
    token, user = AccountService(db).register(
        request.username, request.email, request.password, request.first_name, request.last_name
    )
    return auth_response(token, user)


@app.post("/auth/login", response_model=schemas.AuthResponse)
def login(request: schemas.LoginRequest, db: Session = Depends(get_db)):
    token, user = AccountService(db).login(request.username, request.password)
    return auth_response(token, user)


@app.post("/auth/logout", response_model=schemas.MessageResponse)
def logout():
    # Tokens are stateless; the client drops its copy
    return {"message": "Logged out successfully"}


@app.get("/auth/me", response_model=schemas.UserResponse)
def get_me(identity: str = Depends(get_current_identity), db: Session = Depends(get_db)):
    return AccountService(db).get_current_user(identity)


@app.put("/auth/me", response_model=schemas.UserResponse)
def update_me(
    request: schemas.UpdateUserRequest,
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return AccountService(db).update_profile(identity, request.model_dump(exclude_unset=True))


@app.delete("/auth/me", response_model=schemas.MessageResponse)
def delete_me(identity: str = Depends(get_current_identity), db: Session = Depends(get_db)):
    AccountService(db).delete_account(identity)
    return {"message": "Account deleted successfully"}


# Todos. Fixed paths are registered before /todos/{task_id}.
@app.get("/todos", response_model=List[schemas.TodoResponse])
def list_todos(
    order_by_priority: bool = Query(False, alias="orderByPriority"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    logger.info("GET /todos orderByPriority=%s", order_by_priority)
    return TaskService(db).list(user, order_by_priority=order_by_priority)


@app.get("/todos/completed/{completed}", response_model=List[schemas.TodoResponse])
def list_todos_by_completed(completed: bool, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).list_by_completed(user, completed)


@app.get("/todos/priority/{priority}", response_model=List[schemas.TodoResponse])
def list_todos_by_priority(priority: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).list_by_priority(user, priority)


@app.get("/todos/search", response_model=List[schemas.TodoResponse])
def search_todos(title: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).search_by_title(user, title)


@app.get("/todos/overdue", response_model=List[schemas.TodoResponse])
def list_overdue_todos(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).list_overdue(user)


@app.get("/todos/stats", response_model=schemas.TodoStats)
def todo_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).stats(user)


@app.post("/todos", response_model=schemas.TodoResponse, status_code=status.HTTP_201_CREATED)
def create_todo(task: schemas.TodoCreateRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    logger.info("POST /todos title=%r", task.title)
    return TaskService(db).create(
        user,
        title=task.title,
        description=task.description,
        completed=task.completed,
        priority=task.priority,
        due_date=task.due_date,
    )


@app.delete("/todos/completed")
def delete_completed_todos(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = TaskService(db).delete_all_completed(user)
    return {"message": "All completed todos deleted successfully", "deletedCount": count}


@app.get("/todos/{task_id}", response_model=schemas.TodoResponse)
def get_todo(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).get_by_id(user, task_id)


@app.put("/todos/{task_id}", response_model=schemas.TodoResponse)
def update_todo(
    task_id: int,
    task: schemas.TodoUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return TaskService(db).update(user, task_id, task.model_dump(exclude_none=True))


@app.patch("/todos/{task_id}/complete", response_model=schemas.TodoResponse)
def mark_todo_complete(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).set_completed(user, task_id, True)


@app.patch("/todos/{task_id}/incomplete", response_model=schemas.TodoResponse)
def mark_todo_incomplete(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).set_completed(user, task_id, False)


@app.patch("/todos/{task_id}/toggle", response_model=schemas.TodoResponse)
def toggle_todo(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return TaskService(db).toggle(user, task_id)


@app.delete("/todos/{task_id}")
def delete_todo(task_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    TaskService(db).delete(user, task_id)
    return {"message": "Todo deleted successfully", "deletedId": task_id}
