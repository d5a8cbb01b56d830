"""
Progress and completion payloads — generic and per category (game, quiz, video).
"""

from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

Number = Union[int, float]


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Progress(Payload):
    """Generic progress: {current, total, message?}"""
    current: Number
    total: Number
    message: Optional[str] = None


class GameProgress(Payload):
    score: int
    lives: int
    level: Optional[int] = None
    elapsed_time: Optional[Number] = Field(default=None, alias="elapsedTime")
    fuel: Optional[Number] = None
    status: Literal["playing", "paused", "gameover"] = "playing"


class QuizProgress(Payload):
    current_question: int = Field(alias="currentQuestion")
    total_questions: int = Field(alias="totalQuestions")
    correct_answers: int = Field(default=0, alias="correctAnswers")


class VideoProgress(Payload):
    position: Number
    duration: Number
    percent: Optional[Number] = None


class GameCompletion(Payload):
    """high_score is passed through as given; monotonicity is the game's concern."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Literal["game"] = "game"
    final_score: int = Field(alias="finalScore")
    completed: bool
    won: Optional[bool] = None
    high_score: Optional[int] = Field(default=None, alias="highScore")
    level: Optional[int] = None
    time_elapsed: Optional[Number] = Field(default=None, alias="timeElapsed")
    play_time: Optional[Number] = Field(default=None, alias="playTime")
    difficulty: Optional[Number] = None


class QuizCompletion(Payload):
    type: Literal["quiz"] = "quiz"
    score: Number
    passed: bool
    total_questions: Optional[int] = Field(default=None, alias="totalQuestions")
    correct_answers: Optional[int] = Field(default=None, alias="correctAnswers")


class VideoCompletion(Payload):
    type: Literal["video"] = "video"
    last_position: Number = Field(alias="lastPosition")
    watched_percent: Number = Field(alias="watchedPercent")
    completed: bool
