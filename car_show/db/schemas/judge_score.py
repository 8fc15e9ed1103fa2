# db/schemas/judge_score.py
import uuid
from datetime import datetime
from car_show.db.schemas._base import OrmModel

class ScoreEntry(OrmModel):
    question_id: uuid.UUID
    value: int

class JudgeScoreCreate(OrmModel):
    judge_id: uuid.UUID
    car_id: uuid.UUID
    question_id: uuid.UUID
    score: int

class JudgeScoreRead(JudgeScoreCreate):
    id: uuid.UUID
    scored_at: datetime

class JudgeScoreDetail(JudgeScoreRead):
    judge_name: str
    question: str
