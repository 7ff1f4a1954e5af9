import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

import rules
from app_logger import get_logger, setup_logging
from database import connect, serialize
from errors import InternalError, SchoolError
from notifications import LogOnlyMailer, NotificationDispatcher, SendGridMailer
from repositories import AnnouncementRepository, ClassRepository, StudentRepository, TeacherRepository
from schemas import Announcement
from settings import Settings

logger = get_logger("api")

JsonBody = Optional[Dict[str, Any]]


def build_mailer(settings: Settings):
    if not settings.email_enabled:
        logger.warning("SENDGRID_API_KEY not set; announcement emails will only be logged")
        return LogOnlyMailer()
    return SendGridMailer(settings.sendgrid_api_key, settings.email_from, timeout=settings.email_timeout)


def create_app(settings: Optional[Settings] = None, db=None, mailer=None) -> FastAPI:
    """Build the API. ``db`` and ``mailer`` may be supplied (tests pass fakes)."""
    settings = settings or Settings()
    setup_logging(settings.log_level)
    if db is None:
        db = connect(settings)
    if mailer is None:
        mailer = build_mailer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.mailer.close()

    app = FastAPI(title="School Admin API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.db = db
    app.state.mailer = mailer
    app.state.students = StudentRepository(db)
    app.state.teachers = TeacherRepository(db)
    app.state.classes = ClassRepository(db)
    app.state.announcements = AnnouncementRepository(db)
    app.state.dispatcher = NotificationDispatcher(app.state.teachers, mailer)

    app.state.teachers.ensure_indexes()
    app.state.classes.ensure_indexes()

    register_exception_handlers(app)
    app.include_router(router)
    return app


# ---------- Exception Handlers ----------

def school_error_response(exc: SchoolError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SchoolError)
    async def school_error_handler(request: Request, exc: SchoolError):
        return school_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_shape_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

    @app.exception_handler(PyMongoError)
    async def store_error_handler(request: Request, exc: PyMongoError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return school_error_response(InternalError())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return school_error_response(InternalError())


# ---------- Dependencies ----------

def get_students(request: Request) -> StudentRepository:
    return request.app.state.students


def get_teachers(request: Request) -> TeacherRepository:
    return request.app.state.teachers


def get_classes(request: Request) -> ClassRepository:
    return request.app.state.classes


def get_announcements(request: Request) -> AnnouncementRepository:
    return request.app.state.announcements


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


router = APIRouter()


@router.get("/")
def read_root():
    return {"message": "School Admin API is running"}


# Students
@router.get("/api/students")
def list_students(students: StudentRepository = Depends(get_students)):
    return [serialize(s) for s in students.list_all()]


@router.post("/api/students", status_code=status.HTTP_201_CREATED)
def create_student(payload: JsonBody = Body(None), students: StudentRepository = Depends(get_students)):
    doc = rules.new_student(payload or {})
    return serialize(students.create(doc))


@router.patch("/api/students/{student_id}")
def update_student(student_id: str, payload: JsonBody = Body(None), students: StudentRepository = Depends(get_students)):
    logger.debug("PATCH /api/students/%s body: %s", student_id, payload)
    current = students.get(student_id)
    changes = rules.student_changes(current, payload or {})
    return serialize(students.update(student_id, changes))


@router.post("/api/students/{student_id}/payments")
def add_payment(student_id: str, payload: JsonBody = Body(None), students: StudentRepository = Depends(get_students)):
    payment = rules.new_payment(payload or {})
    return serialize(students.append_payment(student_id, payment))


@router.delete("/api/students/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, students: StudentRepository = Depends(get_students)):
    students.delete(student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Teachers
@router.get("/api/teachers")
def list_teachers(teachers: TeacherRepository = Depends(get_teachers)):
    return [serialize(t) for t in teachers.list_all()]


@router.post("/api/teachers", status_code=status.HTTP_201_CREATED)
def create_teacher(payload: JsonBody = Body(None), teachers: TeacherRepository = Depends(get_teachers)):
    doc = rules.new_teacher(teachers, payload or {})
    return serialize(teachers.create(doc))


@router.patch("/api/teachers/{teacher_id}")
def update_teacher(teacher_id: str, payload: JsonBody = Body(None), teachers: TeacherRepository = Depends(get_teachers)):
    current = teachers.get(teacher_id)
    changes = rules.teacher_changes(teachers, current, payload or {})
    return serialize(teachers.update(teacher_id, changes))


@router.delete("/api/teachers/{teacher_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_teacher(teacher_id: str, teachers: TeacherRepository = Depends(get_teachers)):
    teachers.delete(teacher_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Classes
@router.get("/api/classes")
def list_classes(classes: ClassRepository = Depends(get_classes)):
    return [serialize(c) for c in classes.list_all()]


@router.post("/api/classes/init", status_code=status.HTTP_201_CREATED)
def init_classes(classes: ClassRepository = Depends(get_classes)):
    return [serialize(c) for c in classes.insert_defaults_if_empty()]


@router.patch("/api/classes/{class_id}")
def update_class(class_id: str, payload: JsonBody = Body(None), classes: ClassRepository = Depends(get_classes)):
    current = classes.get(class_id)
    changes = rules.class_changes(current, payload or {})
    return serialize(classes.update(class_id, changes))


# Announcements
@router.get("/api/announcements")
def list_announcements(announcements: AnnouncementRepository = Depends(get_announcements)):
    return [serialize(a) for a in announcements.list_newest_first()]


@router.post("/api/announcements", status_code=status.HTTP_201_CREATED)
def create_announcement(
    background_tasks: BackgroundTasks,
    payload: JsonBody = Body(None),
    announcements: AnnouncementRepository = Depends(get_announcements),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    payload = payload or {}
    rules.require(payload, ["text"])
    announcement = rules.validated(Announcement, {"text": payload["text"]})
    saved = announcements.create(announcement)
    # Emails go out after the response has been sent
    background_tasks.add_task(dispatcher.announce, saved["text"])
    return serialize(saved)


def run() -> None:
    try:
        settings = Settings()
    except PydanticValidationError as exc:
        setup_logging()
        logger.error("Invalid configuration (is MONGO_URI set?): %s", exc)
        sys.exit(1)

    setup_logging(settings.log_level)
    try:
        db = connect(settings)
        app = create_app(settings, db=db)
    except PyMongoError as exc:
        logger.error("MongoDB startup error: %s", exc)
        sys.exit(1)

    import uvicorn
    logger.info("School Admin API listening on port %d", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
