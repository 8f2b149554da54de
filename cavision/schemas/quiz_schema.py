from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

OptionLabel = Literal["A", "B", "C", "D"]
ExamLevel = Literal["Foundation", "Intermediate", "Final"]
ExamGroup = Literal["Group I", "Group II"]
Difficulty = Literal["Easy", "Medium", "Hard"]

OPTION_LABELS: tuple[str, ...] = ("A", "B", "C", "D")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionOptions(BaseModel):
    A: str = Field(..., min_length=1)
    B: str = Field(..., min_length=1)
    C: str = Field(..., min_length=1)
    D: str = Field(..., min_length=1)


class Question(CamelModel):
    id: int
    question: str = Field(..., min_length=1)
    options: QuestionOptions
    correct_answer: OptionLabel
    explanation: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _correct_answer_is_an_option(self):
        if self.correct_answer not in self.options.model_dump():
            raise ValueError(f"correctAnswer {self.correct_answer!r} is not one of the options")
        return self


class SyllabusQuizRequest(CamelModel):
    level: ExamLevel
    group: Optional[ExamGroup] = None
    subject: str = Field(..., min_length=1)
    difficulty: Difficulty
    count: int = Field(..., ge=5, le=50)
    seed: Optional[int] = None


class UploadQuizRequest(CamelModel):
    """Form fields that accompany an uploaded study document."""

    difficulty: Difficulty
    count: int = Field(..., ge=5, le=50)
    seed: Optional[int] = None


class QuizGenerateResponse(CamelModel):
    quiz_id: str
    questions: list[Question]


class QuizSubmitRequest(CamelModel):
    answers: dict[int, Optional[OptionLabel]] = Field(default_factory=dict)
    flagged: list[int] = Field(default_factory=list)


class ReviewItem(CamelModel):
    id: int
    question: str
    options: QuestionOptions
    correct_answer: OptionLabel
    user_answer: Optional[OptionLabel] = None
    is_correct: bool
    flagged: bool = False
    explanation: str = ""


class QuizResultResponse(CamelModel):
    quiz_id: str
    score: int
    total: int
    percentage: float
    stats_saved: bool = True
    review: list[ReviewItem]

