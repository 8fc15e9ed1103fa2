# db/schemas/judge_question.py
import uuid
from pydantic import model_validator
from car_show.db.schemas._base import OrmModel

class JudgeCategoryCreate(OrmModel):
    vehicle_type_id: uuid.UUID
    name: str
    display_order: int = 0
    is_active: bool = True

class JudgeCategoryRead(JudgeCategoryCreate):
    id: uuid.UUID

class JudgeQuestionBase(OrmModel):
    vehicle_type_id: uuid.UUID
    category_id: uuid.UUID
    text: str
    min_score: int
    max_score: int
    display_order: int = 0
    is_active: bool = True

class JudgeQuestionCreate(JudgeQuestionBase):
    @model_validator(mode="after")
    def _check_bounds(self) -> "JudgeQuestionCreate":
        if self.min_score > self.max_score:
            raise ValueError("min_score must not exceed max_score")
        return self

class JudgeQuestionRead(JudgeQuestionBase):
    id: uuid.UUID

    def accepts(self, value: int) -> bool:
        return self.min_score <= value <= self.max_score
