"""FastAPI server exposing quiz, join, answer and results endpoints."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from quizroom.constants.network_constants import (
    API_LOG_LEVEL,
    DEFAULT_HOST,
    DEFAULT_PORT,
    LOCALHOST_FALLBACK,
    UNKNOWN_DEVICE,
)
from quizroom.constants.quiz_constants import (
    DEFAULT_DURATION_UNIT,
    DEFAULT_DURATION_VALUE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIME_LIMIT_MINUTES,
)
from quizroom.core.errors import QuizError
from quizroom.core.models import (
    Question,
    QuestionType,
    ResultsMode,
    ResultsView,
    SubmissionContext,
)
from quizroom.core.quiz_manager import QuizManager
from quizroom.core.services.quiz_repository import QuizDraft
from quizroom.server.serializers import (
    iso,
    serialize_participant,
    serialize_quiz,
    serialize_results,
    serialize_score_record,
    serialize_student_questions,
)

logger = logging.getLogger(__name__)


class QuestionPayload(BaseModel):
    """Payload schema for a question inside a quiz definition."""

    id: str | None = None
    text: str = ""
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: list[str] = Field(default_factory=list)
    correct_answer: int | str | None = None
    points: int = 1

    def to_question(self) -> Question:
        return Question(
            id=self.id or "",
            text=self.text,
            type=self.type,
            options=list(self.options),
            correct_answer=self.correct_answer,
            points=self.points,
        )


class CreateQuizPayload(BaseModel):
    title: str = ""
    description: str = ""
    time_limit_minutes: int = DEFAULT_TIME_LIMIT_MINUTES
    questions: list[QuestionPayload] = Field(default_factory=list)
    allow_retries: bool = False
    randomize_questions: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    duration_value: int = DEFAULT_DURATION_VALUE
    duration_unit: str = DEFAULT_DURATION_UNIT


class UpdateQuizPayload(BaseModel):
    """Partial quiz update; only fields present in the request are applied."""

    title: str | None = None
    description: str | None = None
    time_limit_minutes: int | None = None
    questions: list[QuestionPayload] | None = None
    allow_retries: bool | None = None
    randomize_questions: bool | None = None
    max_attempts: int | None = None
    is_active: bool | None = None
    duration_value: int | None = None
    duration_unit: str | None = None


class StatusPayload(BaseModel):
    is_active: bool


class JoinPayload(BaseModel):
    """Payload schema for the room-code join flow."""

    room_code: str = ""
    participant_name: str = ""


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    session_id: str = ""
    question_id: str = ""
    value: int | float | str | None = None
    participant_id: str | None = None


class SubmitPayload(BaseModel):
    session_id: str = ""
    participant_id: str | None = None


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _client_context(request: Request) -> SubmissionContext:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip_address and request.client is not None:
        ip_address = request.client.host
    return SubmissionContext(
        ip_address=ip_address or LOCALHOST_FALLBACK,
        device_fingerprint=request.headers.get("user-agent") or UNKNOWN_DEVICE,
    )


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title="QuizRoom API", version="0.1.0")
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.exception_handler(QuizError)
    async def handle_quiz_error(request: Request, exc: QuizError) -> JSONResponse:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message},
        )

    @app.get("/api/ping")
    def ping() -> dict[str, object]:
        return {"message": "pong"}

    @app.get("/api/quizzes")
    def list_quizzes(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return {"quizzes": [serialize_quiz(q) for q in manager.list_quizzes()]}

    @app.get("/api/quizzes/active")
    def list_active_quizzes(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return {
            "quizzes": [
                serialize_quiz(q, include_questions=False) for q in manager.list_active_quizzes()
            ]
        }

    @app.post("/api/quiz", status_code=201)
    def create_quiz(
        payload: CreateQuizPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.create_quiz(
            QuizDraft(
                title=payload.title,
                description=payload.description,
                time_limit_minutes=payload.time_limit_minutes,
                questions=[q.to_question() for q in payload.questions],
                allow_retries=payload.allow_retries,
                randomize_questions=payload.randomize_questions,
                max_attempts=payload.max_attempts,
                duration_value=payload.duration_value,
                duration_unit=payload.duration_unit,
            )
        )
        return {"quiz": serialize_quiz(quiz), "success": True}

    @app.post("/api/quiz/join")
    def join_quiz(
        payload: JoinPayload,
        request: Request,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        joined = manager.join_quiz(
            payload.room_code,
            payload.participant_name,
            _client_context(request),
        )
        return {
            "session_id": joined.session.id,
            "participant_id": joined.participant.id,
            "attempt_number": joined.participant.attempt_number,
            "rejoined": joined.rejoined,
            "quiz": serialize_quiz(joined.quiz, include_questions=False),
            "success": True,
        }

    @app.get("/api/quiz/check/{room_code}")
    def check_quiz(
        room_code: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.check_room_code(room_code)
        return {"quiz": serialize_quiz(quiz, include_questions=False), "success": True}

    @app.get("/api/quiz/session/{session_id}/start")
    def start_quiz(
        session_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        started = manager.start_quiz(session_id)
        return {
            "session_id": started.session.id,
            "quiz": serialize_quiz(started.quiz, include_questions=False),
            "questions": serialize_student_questions(started.questions),
            "started_at": iso(started.session.started_at),
            "time_remaining": started.time_remaining_seconds,
        }

    @app.post("/api/quiz/answer")
    def submit_answer(
        payload: AnswerPayload,
        request: Request,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        receipt = manager.submit_answer(
            payload.session_id,
            payload.question_id,
            payload.value,
            context=_client_context(request),
            participant_id=payload.participant_id,
        )
        return {
            "success": receipt.accepted,
            "accepted": receipt.accepted,
            "answers_count": receipt.answers_count,
            "participant_id": receipt.participant_id,
            "auto_submitted": receipt.auto_submitted,
        }

    @app.post("/api/quiz/submit")
    def submit_quiz(
        payload: SubmitPayload,
        request: Request,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        record = manager.finalize_submission(
            payload.session_id,
            context=_client_context(request),
            participant_id=payload.participant_id,
        )
        return {
            "success": True,
            "result": serialize_score_record(record),
            "message": "Quiz submitted successfully. Score calculated automatically.",
        }

    @app.get("/api/quiz/participant/{participant_id}")
    def get_participant(
        participant_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return {"participant": serialize_participant(manager.get_participant(participant_id))}

    @app.get("/api/quiz/{quiz_id}")
    def get_quiz(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return {"quiz": serialize_quiz(manager.get_quiz(quiz_id)), "success": True}

    @app.patch("/api/quiz/{quiz_id}")
    def update_quiz(
        quiz_id: str,
        payload: UpdateQuizPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        changes: dict[str, object] = payload.model_dump(exclude_unset=True, exclude={"questions"})
        if payload.questions is not None:
            changes["questions"] = [q.to_question() for q in payload.questions]
        quiz = manager.update_quiz(quiz_id, changes)
        return {"quiz": serialize_quiz(quiz), "success": True}

    @app.patch("/api/quiz/{quiz_id}/status")
    def update_quiz_status(
        quiz_id: str,
        payload: StatusPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.set_quiz_status(quiz_id, payload.is_active)
        return {"quiz": serialize_quiz(quiz), "success": True}

    @app.delete("/api/quiz/{quiz_id}")
    def delete_quiz(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        manager.delete_quiz(quiz_id)
        return {"success": True, "message": "Quiz deleted successfully"}

    @app.get("/api/quiz/{quiz_id}/results")
    def get_results(
        quiz_id: str,
        mode: ResultsMode = ResultsMode.RAW,
        view: ResultsView = ResultsView.ATTEMPTS,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return serialize_results(manager.get_results(quiz_id, mode=mode, view=view))

    @app.post("/api/quiz/{quiz_id}/results")
    def recalculate_results(
        quiz_id: str,
        view: ResultsView = ResultsView.ATTEMPTS,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        results = manager.get_results(quiz_id, mode=ResultsMode.FORCE_RECALCULATE, view=view)
        return serialize_results(results)

    return app


def run_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until the process is stopped."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=API_LOG_LEVEL)
    server = uvicorn.Server(config)
    server.run()
