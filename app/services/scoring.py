"""Turn an untrusted judge payload into a bounded, canonical score."""
import json
import math
from dataclasses import asdict, dataclass
from typing import Any

from app.utils.exceptions import InvalidResponseShape

DEFAULT_AI_COMMENT = "The judges are confused. Please try again."

ACCURACY_MAX = 50
COMPOSITION_MAX = 25
VIBE_MAX = 25
TOTAL_MAX = 100
APPROVAL_ACCURACY_THRESHOLD = 25


@dataclass(frozen=True)
class ScoreBreakdown:
    accuracy: int = 0
    composition: int = 0
    vibe: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScoreResult:
    breakdown: ScoreBreakdown
    total_score: int
    is_approved: bool
    ai_comment: str


def _require_number(payload: dict, key: str) -> float:
    value = payload.get(key)
    # bool is an int subclass; a judge answering ``true`` is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidResponseShape(f"Invalid AI response structure: '{key}' must be a number")
    return value


def _clamp(value: float, upper: int) -> int:
    return int(round(max(0, min(upper, value))))


def normalize_judge_response(raw: Any) -> ScoreResult:
    if not isinstance(raw, dict):
        raise InvalidResponseShape("Invalid AI response structure: expected an object")

    breakdown = raw.get("breakdown")
    if not isinstance(breakdown, dict):
        raise InvalidResponseShape("Invalid AI response structure: 'breakdown' is missing")

    accuracy = _clamp(_require_number(breakdown, "accuracy"), ACCURACY_MAX)
    composition = _clamp(_require_number(breakdown, "composition"), COMPOSITION_MAX)
    vibe = _clamp(_require_number(breakdown, "vibe"), VIBE_MAX)
    total_score = _clamp(_require_number(raw, "score"), TOTAL_MAX)

    explicit = raw.get("is_approved", raw.get("isApproved"))
    is_approved = explicit if isinstance(explicit, bool) else accuracy >= APPROVAL_ACCURACY_THRESHOLD

    # Veto: nothing recognisable in the photo means rejection whatever the rest says.
    if accuracy == 0:
        total_score = 0
        is_approved = False

    comment = raw.get("comment")
    comment = comment.strip() if isinstance(comment, str) else ""

    return ScoreResult(
        breakdown=ScoreBreakdown(accuracy=accuracy, composition=composition, vibe=vibe),
        total_score=total_score,
        is_approved=is_approved,
        ai_comment=comment or DEFAULT_AI_COMMENT,
    )


def failure_result() -> ScoreResult:
    return ScoreResult(
        breakdown=ScoreBreakdown(),
        total_score=0,
        is_approved=False,
        ai_comment=DEFAULT_AI_COMMENT,
    )


def parse_score_breakdown(raw: str | None) -> ScoreBreakdown:
    """Read a stored breakdown, treating anything unreadable as zeroes."""
    if not raw:
        return ScoreBreakdown()
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return ScoreBreakdown()
    if not isinstance(parsed, dict):
        return ScoreBreakdown()

    def _int(key: str) -> int:
        value = parsed.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return 0
        return int(value)

    return ScoreBreakdown(accuracy=_int("accuracy"), composition=_int("composition"), vibe=_int("vibe"))
