from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies arrive in camelCase; snake_case is accepted as well."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartQuizRequest(CamelModel):
    course_id: str
    subject_id: str
    section_id: str
    section_title: Optional[str] = None
    difficulty: Optional[Literal["Beginner", "Intermediate", "Advanced"]] = None
    target_length: Optional[int] = Field(default=None, ge=1, le=50)


class ResumeQuizRequest(CamelModel):
    section_id: Optional[str] = None


class PreviousAnswer(CamelModel):
    question_id: str
    selected_option: str
    is_correct: bool


class NextQuestionRequest(CamelModel):
    session_id: str
    previous_answer: Optional[PreviousAnswer] = None


class SessionRequest(CamelModel):
    session_id: str


class CheckStatusRequest(CamelModel):
    section_id: str
