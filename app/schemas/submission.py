from pydantic import BaseModel


class SubmissionCreate(BaseModel):
    task_id: int
    photo_id: str
    group_id: str


class ScoreBreakdownResponse(BaseModel):
    accuracy: int
    composition: int
    vibe: int


class SubmissionResponse(BaseModel):
    id: str
    user_id: str
    group_id: str
    task_id: int
    photo_id: str
    total_score: int
    score_breakdown: ScoreBreakdownResponse
    ai_comment: str
    valid: bool
    submitted_at: str
