"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they validate the request body with
the pydantic schemas, delegate to repositories/services and shape the
JSON response. Domain errors are mapped to status codes by the exception
handlers registered in `create_app`.

Endpoints implemented:
- POST /api/students/register
- POST /api/auth/login
- GET /api/students
- PUT /api/students/{admission_number}
- DELETE /api/students/{admission_number}
- POST /api/books/add
- GET /api/books
- PUT /api/books/{isbn}
- DELETE /api/books/{isbn}
- GET /health
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models, repositories, services
from .auth import get_current_admission_number
from .config import Settings, settings
from .errors import (
    DuplicateKeyError,
    InvalidCredentialsError,
    NotFoundError,
    RecordValidationError,
    StorageBusyError,
    StorageError,
    UnauthenticatedError,
)
from .schemas import BookIn, BookUpdateIn, LoginIn, StudentRegisterIn, StudentUpdateIn, TokenOut
from .storage import DocumentStore
from .tokens import TokenService

logger = logging.getLogger("library_api.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

router = APIRouter(prefix="/api")


def get_students(request: Request) -> repositories.StudentRepository:
    return request.app.state.students


def get_books(request: Request) -> repositories.BookRepository:
    return request.app.state.books


def get_auth_service(request: Request) -> services.AuthService:
    return request.app.state.auth_service


@router.post('/students/register', status_code=201)
def register_student(payload: StudentRegisterIn, auth: services.AuthService = Depends(get_auth_service)):
    """Register a new student.

    The password is hashed before anything is stored; a duplicate
    admission number is rejected with 400.
    """
    student = auth.register(payload.record_fields(), payload.password)
    return {'message': 'Registration successful', 'student': models.STUDENTS.public(student)}


@router.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, auth: services.AuthService = Depends(get_auth_service)):
    """Authenticate a student and return a one-hour bearer token."""
    return {'token': auth.login(payload.admissionNumber, payload.password)}


@router.get('/students')
def list_students(
    students: repositories.StudentRepository = Depends(get_students),
    _user: str = Depends(get_current_admission_number),
):
    """List all students without their credential hashes."""
    return [models.STUDENTS.public(s) for s in students.list_all()]


@router.put('/students/{admission_number}')
def update_student(
    admission_number: str,
    payload: StudentUpdateIn,
    students: repositories.StudentRepository = Depends(get_students),
    _user: str = Depends(get_current_admission_number),
):
    """Merge the provided fields into the student's record."""
    updated = students.update(admission_number, payload.changes())
    return {'message': 'Student updated successfully', 'student': models.STUDENTS.public(updated)}


@router.delete('/students/{admission_number}')
def delete_student(
    admission_number: str,
    students: repositories.StudentRepository = Depends(get_students),
    _user: str = Depends(get_current_admission_number),
):
    students.delete(admission_number)
    return {'message': 'Student deleted successfully'}


@router.post('/books/add', status_code=201)
def add_book(
    payload: BookIn,
    books: repositories.BookRepository = Depends(get_books),
    _user: str = Depends(get_current_admission_number),
):
    """Add a book; the ISBN must not already exist."""
    book = books.insert(payload.model_dump())
    return {'message': 'Book added successfully', 'book': book}


@router.get('/books')
def list_books(
    books: repositories.BookRepository = Depends(get_books),
    _user: str = Depends(get_current_admission_number),
):
    return books.list_all()


@router.put('/books/{isbn}')
def update_book(
    isbn: str,
    payload: BookUpdateIn,
    books: repositories.BookRepository = Depends(get_books),
    _user: str = Depends(get_current_admission_number),
):
    """Merge the provided fields into the book's record."""
    updated = books.update(isbn, payload.changes())
    return {'message': 'Book updated successfully', 'book': updated}


@router.delete('/books/{isbn}')
def delete_book(
    isbn: str,
    books: repositories.BookRepository = Depends(get_books),
    _user: str = Depends(get_current_admission_number),
):
    books.delete(isbn)
    return {'message': 'Book deleted successfully'}


def _field_errors(exc: RequestValidationError) -> list:
    out = []
    for err in exc.errors():
        loc = [str(part) for part in err.get('loc', ()) if part != 'body']
        out.append({'field': '.'.join(loc) or 'body', 'message': err.get('msg', 'invalid value')})
    return out


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={'errors': _field_errors(exc)})

    @app.exception_handler(RecordValidationError)
    async def record_validation_handler(request: Request, exc: RecordValidationError):
        return JSONResponse(status_code=400, content={'errors': exc.errors})

    @app.exception_handler(DuplicateKeyError)
    @app.exception_handler(InvalidCredentialsError)
    async def bad_request_handler(request: Request, exc):
        return JSONResponse(status_code=400, content={'message': exc.message})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={'message': exc.message})

    @app.exception_handler(UnauthenticatedError)
    async def unauthenticated_handler(request: Request, exc: UnauthenticatedError):
        return JSONResponse(
            status_code=401,
            content={'message': exc.message},
            headers={'WWW-Authenticate': 'Bearer'},
        )

    @app.exception_handler(StorageBusyError)
    async def storage_busy_handler(request: Request, exc: StorageBusyError):
        logger.error("storage_busy path=%s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=503,
            content={'message': 'Service busy, try again'},
            headers={'Retry-After': '1'},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "storage_failure %s",
            json.dumps(
                {
                    'request_id': getattr(request.state, 'request_id', ''),
                    'path': request.url.path,
                    'error': type(exc).__name__,
                    'detail': exc.message,
                },
                ensure_ascii=True,
            ),
        )
        return JSONResponse(status_code=500, content={'message': 'Server error'})


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application with its store, repositories and token service.

    The token secret and data directory come from `app_settings` (the
    process-wide `settings` by default) and are fixed for the app's lifetime.
    """
    cfg = app_settings or settings
    app = FastAPI(title="Student & Book Records API")

    store = DocumentStore(cfg.DATA_DIR, lock_timeout=cfg.LOCK_TIMEOUT_SECONDS)
    tokens = TokenService(cfg.JWT_SECRET, algorithm=cfg.JWT_ALGORITHM, ttl_seconds=cfg.TOKEN_TTL_SECONDS)
    students = repositories.StudentRepository(store, services.make_password_context(cfg.PASSWORD_HASH_ROUNDS))
    app.state.settings = cfg
    app.state.store = store
    app.state.tokens = tokens
    app.state.students = students
    app.state.books = repositories.BookRepository(store)
    app.state.auth_service = services.AuthService(students, tokens)

    if cfg.FRONTEND_URL:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[cfg.FRONTEND_URL],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                    },
                    ensure_ascii=True,
                ),
            )
            raise
        response.headers["X-Request-ID"] = req_id
        if request.url.path.startswith("/api"):
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            logger.info(
                "request_done %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "status_code": response.status_code,
                        "duration_ms": elapsed_ms,
                    },
                    ensure_ascii=True,
                ),
            )
        return response

    @app.get("/health")
    def health():
        """Lightweight health check for uptime monitoring."""
        return {"status": "ok"}

    _register_error_handlers(app)
    app.include_router(router)
    logger.info("app_created data_dir=%s env=%s", cfg.DATA_DIR, cfg.ENV)
    return app


app = create_app()
