"""
Progress / completion / cancellation payload builders.

Pure functions: they shape the envelope payload and nothing else. The
CalleeSession decides whether the envelope may be sent.
"""

from typing import Any, Optional

from mcp_embed.models.events import ProgressType
from mcp_embed.models.progress import (
    GameCompletion,
    GameProgress,
    Number,
    Progress,
    QuizCompletion,
    QuizProgress,
    VideoCompletion,
    VideoProgress,
)


def ready_payload(version: str, capabilities: list[str]) -> dict[str, Any]:
    return {"version": version, "capabilities": list(capabilities)}


def progress_payload(current: Number, total: Number, message: Optional[str] = None) -> dict[str, Any]:
    return {"data": Progress(current=current, total=total, message=message).to_wire()}


def game_progress_payload(
    score: int,
    lives: int,
    level: Optional[int] = None,
    elapsed_time: Optional[Number] = None,
    status: str = "playing",
    fuel: Optional[Number] = None,
) -> dict[str, Any]:
    data = GameProgress(score=score, lives=lives, level=level, elapsed_time=elapsed_time, status=status, fuel=fuel)
    return {"progressType": ProgressType.GAME, "data": data.to_wire()}


def quiz_progress_payload(current_question: int, total_questions: int, correct_answers: int = 0) -> dict[str, Any]:
    data = QuizProgress(
        current_question=current_question,
        total_questions=total_questions,
        correct_answers=correct_answers,
    )
    return {"progressType": ProgressType.QUIZ, "data": data.to_wire()}


def video_progress_payload(position: Number, duration: Number, percent: Optional[Number] = None) -> dict[str, Any]:
    if percent is None and duration:
        percent = round(position / duration * 100, 2)
    data = VideoProgress(position=position, duration=duration, percent=percent)
    return {"progressType": ProgressType.VIDEO, "data": data.to_wire()}


def complete_payload(data: Any = None) -> dict[str, Any]:
    return {"status": "completed", "success": True, "data": data if data is not None else {}}


def game_completion_data(
    final_score: int,
    completed: bool = True,
    won: Optional[bool] = None,
    high_score: Optional[int] = None,
    level: Optional[int] = None,
    time_elapsed: Optional[Number] = None,
    **extra: Any,
) -> dict[str, Any]:
    """high_score is passed through unchecked."""
    return GameCompletion(
        final_score=final_score,
        completed=completed,
        won=won,
        high_score=high_score,
        level=level,
        time_elapsed=time_elapsed,
        **extra,
    ).to_wire()


def quiz_completion_data(
    score: Number,
    passed: bool,
    total_questions: Optional[int] = None,
    correct_answers: Optional[int] = None,
) -> dict[str, Any]:
    return QuizCompletion(
        score=score, passed=passed, total_questions=total_questions, correct_answers=correct_answers,
    ).to_wire()


def video_completion_data(last_position: Number, watched_percent: Number, completed: bool) -> dict[str, Any]:
    return VideoCompletion(
        last_position=last_position, watched_percent=watched_percent, completed=completed,
    ).to_wire()


def cancel_payload(reason: str, data: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "cancelled", "reason": reason}
    if data is not None:
        payload["data"] = data
    return payload


def error_payload(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}
