import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fluentflow.application.session import StudySession
from fluentflow.application.study_service import StudyService
from fluentflow.consts import VERSION
from fluentflow.domain.constants import MAX_OPEN_SESSIONS, SESSION_IDLE_TIMEOUT
from fluentflow.domain.exceptions import (
    ConflictError,
    FluentFlowError,
    NotFoundError,
    ValidationError,
)
from fluentflow.domain.models import (
    AnswerMode,
    BookSection,
    ExtractedWord,
    ImportMode,
    StudyBook,
    StudyMode,
    book_from_dict,
    book_to_dict,
    card_to_dict,
    sentence_card_from_dict,
    word_book_from_dict,
    word_book_to_dict,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("fluentflow.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"FluentFlow Server v{VERSION} starting up...")
    yield
    # Shutdown
    service = getattr(app.state, "study_service", None)
    if service is not None:
        await service.close()
    logger.info("FluentFlow Server shutting down...")


app = FastAPI(
    title="FluentFlow Server",
    description="Study books, word book and review sessions for FluentFlow.",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(FluentFlowError)
async def fluentflow_exception_handler(request: Request, exc: FluentFlowError):
    """Map application exceptions onto HTTP status codes."""
    if isinstance(exc, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        status_code = status.HTTP_409_CONFLICT
    else:
        # Persistence and assistant failures; the client may retry
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def get_service(request: Request) -> StudyService:
    """Return the app's StudyService, building it from config on first use."""
    service = getattr(request.app.state, "study_service", None)
    if service is None:
        from fluentflow.application.config import resolve_config
        from fluentflow.application.factory import build_study_service

        service = build_study_service(resolve_config())
        request.app.state.study_service = service
    return service


class SessionRegistry:
    """
    Open sessions by id.

    Sessions idle for longer than ``idle_timeout`` seconds, and the least
    recently used ones beyond ``max_sessions``, are evicted when a new
    session is registered. Callers save what ``add`` evicts.
    """

    def __init__(
        self,
        max_sessions: int = MAX_OPEN_SESSIONS,
        idle_timeout: float = SESSION_IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_sessions = max_sessions
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, StudySession] = {}
        self._touched: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def add(self, session: StudySession) -> list[StudySession]:
        """Register a session and return the ones evicted to make room."""
        now = self._clock()
        stale = [sid for sid, t in self._touched.items() if now - t > self.idle_timeout]
        overflow = len(self._sessions) - len(stale) + 1 - self.max_sessions
        if overflow > 0:
            by_age = sorted(self._touched, key=self._touched.__getitem__)
            stale.extend([sid for sid in by_age if sid not in stale][:overflow])

        evicted = [self._sessions[sid] for sid in stale]
        for sid in stale:
            self.pop(sid)
        self._sessions[session.id] = session
        self._touched[session.id] = now
        return evicted

    def get(self, session_id: str) -> StudySession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        self._touched[session_id] = self._clock()
        return session

    def pop(self, session_id: str) -> StudySession | None:
        self._touched.pop(session_id, None)
        return self._sessions.pop(session_id, None)


def get_sessions(request: Request) -> SessionRegistry:
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is None:
        sessions = SessionRegistry()
        request.app.state.sessions = sessions
    return sessions


async def _save_evicted(service: StudyService, session: StudySession) -> None:
    try:
        await service.finish(session)
        logger.info(f"Saved idle session {session.id}")
    except FluentFlowError as e:
        logger.error(f"Could not save evicted session {session.id}: {e}")


def _session_state(session: StudySession) -> dict[str, Any]:
    card = session.current_card
    return {
        "id": session.id,
        "collectionId": session.collection.id,
        "title": session.collection.title,
        "mode": session.mode.value,
        "status": session.status.value,
        "position": session.position,
        "total": len(session.queue),
        "progress": session.progress,
        "answered": session.answered,
        "card": card_to_dict(card) if card is not None else None,
    }


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


# ---------------------------------------------------------------------------
# Study books
# ---------------------------------------------------------------------------


class ImportRequest(BaseModel):
    title: str
    content: str
    mode: ImportMode = ImportMode.BILINGUAL


class UpdateBookRequest(BaseModel):
    title: str | None = None
    cards: list[dict[str, Any]]


@app.get("/api/study-books")
async def list_books(service: StudyService = Depends(get_service)):
    return [book_to_dict(b) for b in await service.books.list_books()]


@app.get("/api/study-books/{book_id}")
async def get_book(book_id: str, service: StudyService = Depends(get_service)):
    return book_to_dict(await service.books.load_book(book_id))


@app.post("/api/study-books", status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: dict[str, Any] = Body(...), service: StudyService = Depends(get_service)
):
    if not payload.get("id"):
        raise ValidationError("Book id is required.")
    try:
        book = book_from_dict(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid book document: {e}") from e
    return book_to_dict(await service.books.create_book(book))


@app.post("/api/study-books/import", status_code=status.HTTP_201_CREATED)
async def import_book(req: ImportRequest, service: StudyService = Depends(get_service)):
    logger.info(f"Import requested via API: '{req.title}' ({req.mode.value})")
    book = await service.import_book(req.title, req.content, req.mode)
    return book_to_dict(book)


@app.put("/api/study-books/{book_id}")
async def update_book(
    book_id: str, req: UpdateBookRequest, service: StudyService = Depends(get_service)
):
    current = await service.books.load_book(book_id)
    try:
        cards = tuple(sentence_card_from_dict(c) for c in req.cards)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid card document: {e}") from e
    book = StudyBook(
        id=current.id,
        title=req.title or current.title,
        cards=cards,
        created_at=current.created_at,
    )
    return book_to_dict(await service.books.update_book(book))


@app.delete("/api/study-books/{book_id}")
async def delete_book(book_id: str, service: StudyService = Depends(get_service)):
    await service.books.delete_book(book_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Library sections
# ---------------------------------------------------------------------------


class AddSectionRequest(BaseModel):
    name: str
    content: str


class UpdateSectionRequest(BaseModel):
    content: str


def _section_repository(service: StudyService):
    if service.sections is None:
        raise ValidationError("Sections are only kept by the library backend.")
    return service.sections


def _section_to_dict(section: BookSection) -> dict[str, str]:
    return {"name": section.name, "content": section.content}


@app.get("/api/library/books/{book_id}/sections")
async def list_sections(book_id: str, service: StudyService = Depends(get_service)):
    sections = await _section_repository(service).list_sections(book_id)
    return [_section_to_dict(s) for s in sections]


@app.post("/api/library/books/{book_id}/sections", status_code=status.HTTP_201_CREATED)
async def add_section(
    book_id: str, req: AddSectionRequest, service: StudyService = Depends(get_service)
):
    section = await _section_repository(service).add_section(book_id, req.name, req.content)
    return _section_to_dict(section)


@app.put("/api/library/books/{book_id}/sections/{section_name}")
async def update_section(
    book_id: str,
    section_name: str,
    req: UpdateSectionRequest,
    service: StudyService = Depends(get_service),
):
    repository = _section_repository(service)
    return _section_to_dict(await repository.update_section(book_id, section_name, req.content))


@app.delete("/api/library/books/{book_id}/sections/{section_name}")
async def delete_section(
    book_id: str, section_name: str, service: StudyService = Depends(get_service)
):
    await _section_repository(service).delete_section(book_id, section_name)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Word book
# ---------------------------------------------------------------------------


class WordItem(BaseModel):
    word: str
    chinese: str


class AddWordsRequest(BaseModel):
    words: list[WordItem]


def _word_repository(service: StudyService):
    if service.words is None:
        raise ValidationError("No word book storage configured.")
    return service.words


@app.get("/api/word-book")
async def get_word_book(service: StudyService = Depends(get_service)):
    return word_book_to_dict(await _word_repository(service).load_word_book())


@app.put("/api/word-book")
async def save_word_book(
    payload: dict[str, Any] = Body(...), service: StudyService = Depends(get_service)
):
    try:
        book = word_book_from_dict(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid word book document: {e}") from e
    await _word_repository(service).save_word_book(book)
    return word_book_to_dict(book)


@app.post("/api/word-book/words")
async def add_words(req: AddWordsRequest, service: StudyService = Depends(get_service)):
    _word_repository(service)
    added = await service.add_words(ExtractedWord(word=w.word, chinese=w.chinese) for w in req.words)
    return {"added": [card_to_dict(c) for c in added]}


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class StartSessionRequest(BaseModel):
    book_id: str | None = None
    word_book: bool = False
    mode: StudyMode = StudyMode.LEARN


class AnswerRequest(BaseModel):
    user_input: str
    answer_mode: AnswerMode = AnswerMode.FIXED


@app.post("/api/sessions", status_code=status.HTTP_201_CREATED)
async def start_session(
    req: StartSessionRequest,
    service: StudyService = Depends(get_service),
    sessions: SessionRegistry = Depends(get_sessions),
):
    if req.word_book:
        session = await service.start_word_drill(req.mode)
    elif req.book_id:
        session = await service.start(req.book_id, req.mode)
    else:
        raise ValidationError("Either book_id or word_book is required.")

    # Terminal sessions have nothing to save and are not registered
    if not session.is_terminal:
        for stale in sessions.add(session):
            await _save_evicted(service, stale)
    return _session_state(session)


@app.get("/api/sessions/{session_id}")
async def get_session(
    session_id: str, sessions: SessionRegistry = Depends(get_sessions)
):
    return _session_state(sessions.get(session_id))


@app.post("/api/sessions/{session_id}/answer")
async def answer_card(
    session_id: str,
    req: AnswerRequest,
    service: StudyService = Depends(get_service),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = sessions.get(session_id)
    outcome = await service.answer(session, req.user_input, req.answer_mode)
    return {
        "isCorrect": outcome.is_correct,
        "reason": outcome.reason,
        "expected": outcome.expected,
        "card": card_to_dict(outcome.card),
        "session": _session_state(session),
    }


@app.post("/api/sessions/{session_id}/next")
async def next_card(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.advance()
    return _session_state(session)


@app.post("/api/sessions/{session_id}/skip")
async def skip_card(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    session = sessions.get(session_id)
    session.skip()
    return _session_state(session)


@app.post("/api/sessions/{session_id}/end")
async def end_session(
    session_id: str,
    service: StudyService = Depends(get_service),
    sessions: SessionRegistry = Depends(get_sessions),
):
    session = sessions.get(session_id)
    # A failed save raises before the session is dropped, so the client can retry
    saved = await service.finish(session)
    sessions.pop(session_id)
    document = book_to_dict(saved) if isinstance(saved, StudyBook) else word_book_to_dict(saved)
    return {"status": session.status.value, "collection": document}
