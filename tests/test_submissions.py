import asyncio
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from app.database import async_session
from app.main import app
from app.models.submission import Submission
from app.schemas.auth import AuthIdentity
from app.schemas.submission import SubmissionResponse
from app.seed import SEED_ADMIN_ID, SEED_GROUP_ID, SEED_OTHER_GROUP_ID, SEED_RIVAL_ID, SEED_USER_ID
from app.services import submission_service
from app.services.judge import JudgeError


def _client(cookies=None):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", cookies=cookies)


async def _count_submissions(**filters) -> int:
    async with async_session() as db:
        query = select(func.count()).select_from(Submission)
        for key, value in filters.items():
            query = query.where(getattr(Submission, key) == value)
        return (await db.execute(query)).scalar_one()


@pytest.mark.asyncio
async def test_submit_records_judged_submission(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    data = body["data"]
    assert data["user_id"] == SEED_USER_ID
    assert data["total_score"] == 82
    assert data["score_breakdown"] == {"accuracy": 42, "composition": 20, "vibe": 20}
    assert data["valid"] is True
    assert data["ai_comment"] == "A fine snowman."
    assert set(data) == set(SubmissionResponse.model_fields)

    assert len(fake_judge.calls) == 1
    assert "a snowman" in fake_judge.calls[0][1]


@pytest.mark.asyncio
async def test_submit_requires_session(fake_judge, make_photo):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client() as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 401
    assert response.json()["code"] == "unauthenticated"
    assert fake_judge.calls == []


@pytest.mark.asyncio
async def test_submit_with_invalid_token_is_unauthenticated(fake_judge, make_photo):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client({"auth_token": "forged.token"}) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 401
    assert "auth_token" in response.headers.get("set-cookie", "")


@pytest.mark.asyncio
async def test_submit_to_foreign_group_is_forbidden_before_judging(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    before = await _count_submissions(user_id=SEED_USER_ID, group_id=SEED_OTHER_GROUP_ID)

    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 3, "photo_id": photo_id, "group_id": SEED_OTHER_GROUP_ID},
        )

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"
    assert fake_judge.calls == []
    assert await _count_submissions(user_id=SEED_USER_ID, group_id=SEED_OTHER_GROUP_ID) == before


@pytest.mark.asyncio
async def test_submit_someone_elses_photo_is_forbidden(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_RIVAL_ID)

    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 403
    assert response.json()["code"] == "not_photo_owner"
    assert fake_judge.calls == []
    assert await _count_submissions(photo_id=photo_id) == 0


@pytest.mark.asyncio
async def test_admin_cannot_submit_someone_elses_photo(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)

    async with _client(await login_as("huntmaster")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 403
    assert response.json()["code"] == "not_photo_owner"


@pytest.mark.asyncio
async def test_submit_missing_photo(fake_judge, fake_store, login_as):
    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": "nope", "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 404
    assert response.json()["code"] == "photo_not_found"


@pytest.mark.asyncio
async def test_submit_missing_task(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 9999, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 404
    assert response.json()["code"] == "task_not_found"


@pytest.mark.asyncio
async def test_submit_task_not_assigned_to_group(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 3, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 400
    assert response.json()["code"] == "task_not_assigned"
    assert fake_judge.calls == []


@pytest.mark.asyncio
async def test_submit_rejects_malformed_payload(fake_judge, fake_store, login_as):
    async with _client(await login_as("hunter")) as client:
        response = await client.post("/api/v1/submissions", json={"photo_id": "x"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


@pytest.mark.asyncio
async def test_veto_applies_end_to_end(fake_judge, make_photo, login_as):
    fake_judge.payload = {
        "score": 70,
        "breakdown": {"accuracy": 0, "composition": 25, "vibe": 25},
        "is_approved": True,
        "comment": "Gorgeous, but where is the snowman?",
    }
    photo_id = await make_photo(SEED_USER_ID)

    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    data = response.json()["data"]
    assert data["total_score"] == 0
    assert data["valid"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [JudgeError("Judge timed out after 20.0s"), asyncio.TimeoutError()])
async def test_judge_failure_records_safe_rejection(fake_judge, make_photo, login_as, error):
    fake_judge.error = error
    photo_id = await make_photo(SEED_USER_ID)

    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["total_score"] == 0
    assert data["valid"] is False
    assert data["score_breakdown"] == {"accuracy": 0, "composition": 0, "vibe": 0}
    assert "timed out" not in data["ai_comment"]
    assert await _count_submissions(photo_id=photo_id) == 1


@pytest.mark.asyncio
async def test_unparseable_judge_payload_records_safe_rejection(fake_judge, make_photo, login_as):
    fake_judge.payload = {"verdict": "looks great"}
    photo_id = await make_photo(SEED_USER_ID)

    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 201
    assert response.json()["data"]["valid"] is False


@pytest.mark.asyncio
async def test_judge_failure_without_recording_stores_nothing(fake_judge, make_photo, login_as):
    fake_judge.error = JudgeError("Judge timed out after 20.0s")
    photo_id = await make_photo(SEED_USER_ID)

    with patch("app.services.submission_service.settings.record_failed_judgements", False):
        async with _client(await login_as("hunter")) as client:
            response = await client.post(
                "/api/v1/submissions",
                json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
            )

    assert response.status_code == 503
    assert response.json()["code"] == "scoring_unavailable"
    assert "timed out" not in response.json()["message"]
    assert await _count_submissions(photo_id=photo_id) == 0


@pytest.mark.asyncio
async def test_missing_photo_bytes_is_handled_like_a_judge_failure(fake_judge, fake_store, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    fake_store.objects.clear()

    async with _client(await login_as("hunter")) as client:
        response = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )

    assert response.status_code == 201
    assert response.json()["data"]["valid"] is False
    assert fake_judge.calls == []


@pytest.mark.asyncio
async def test_concurrent_resubmissions_each_keep_a_complete_row(fake_judge, fake_store, make_photo):
    fake_judge.delay = 0.01
    photo_id = await make_photo(SEED_USER_ID)
    identity = AuthIdentity(user_id=SEED_USER_ID, display_name="hunter")

    async def _submit():
        async with async_session() as db:
            return await submission_service.submit(
                db, identity, task_id=2, photo_id=photo_id, group_id=SEED_GROUP_ID,
                judge=fake_judge, store=fake_store,
            )

    first, second = await asyncio.gather(_submit(), _submit())

    assert first.id != second.id
    async with async_session() as db:
        result = await db.execute(select(Submission).where(Submission.photo_id == photo_id))
        rows = result.scalars().all()
    assert len(rows) == 2
    assert all(row.score_breakdown and row.ai_comment for row in rows)


@pytest.mark.asyncio
async def test_feed_includes_reaction_summaries(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        created = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )
    submission_id = created.json()["data"]["id"]

    async with _client(await login_as("rival")) as client:
        await client.post(f"/api/v1/submissions/{submission_id}/reactions", json={"emoji": "🔥"})
        response = await client.get("/api/v1/submissions", params={"group_id": SEED_GROUP_ID})

    assert response.status_code == 200
    feed = response.json()["data"]
    item = next(i for i in feed if i["id"] == submission_id)
    assert item["user_name"] == "hunter"
    assert item["task_description"] == "Find a snowman"
    assert item["image_path"].endswith(".jpg")
    assert item["reactions"][0]["emoji"] == "🔥"
    assert item["reactions"][0]["viewer_has_reacted"] is True
    assert item["viewer_reaction_emojis"] == ["🔥"]
    assert "🎉" in item["available_reaction_emojis"]
    assert [i["submitted_at"] for i in feed] == sorted((i["submitted_at"] for i in feed), reverse=True)


@pytest.mark.asyncio
async def test_feed_valid_only_filters_rejections(fake_judge, make_photo, login_as):
    fake_judge.error = JudgeError("down")
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        created = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )
        response = await client.get(
            "/api/v1/submissions", params={"group_id": SEED_GROUP_ID, "valid_only": "true"}
        )

    rejected_id = created.json()["data"]["id"]
    assert all(item["valid"] for item in response.json()["data"])
    assert rejected_id not in {item["id"] for item in response.json()["data"]}


@pytest.mark.asyncio
async def test_feed_of_foreign_group_is_forbidden(login_as):
    async with _client(await login_as("hunter")) as client:
        response = await client.get("/api/v1/submissions", params={"group_id": SEED_OTHER_GROUP_ID})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_reads_any_feed(login_as):
    async with _client(await login_as("huntmaster")) as client:
        response = await client.get("/api/v1/submissions", params={"group_id": SEED_OTHER_GROUP_ID})

    assert response.status_code == 200
    assert isinstance(response.json()["data"], list)


@pytest.mark.asyncio
async def test_leaderboard_counts_each_task_once(fake_judge, make_photo, login_as):
    async with _client(await login_as("rival")) as client:
        for task_id in (1, 1, 2):
            photo_id = await make_photo(SEED_RIVAL_ID)
            await client.post(
                "/api/v1/submissions",
                json={"task_id": task_id, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
            )
        response = await client.get("/api/v1/submissions/leaderboard", params={"group_id": SEED_GROUP_ID})

    assert response.status_code == 200
    board = response.json()["data"]
    rival = next(entry for entry in board if entry["user_id"] == SEED_RIVAL_ID)
    assert rival["tasks_completed"] == 2
    assert rival["total_score"] == 164
    assert all(entry["user_id"] != SEED_ADMIN_ID for entry in board)


@pytest.mark.asyncio
async def test_delete_submission_owner_only(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        created = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )
    submission_id = created.json()["data"]["id"]

    async with _client(await login_as("rival")) as client:
        forbidden = await client.delete(f"/api/v1/submissions/{submission_id}")
    assert forbidden.status_code == 403

    async with _client(await login_as("hunter")) as client:
        deleted = await client.delete(f"/api/v1/submissions/{submission_id}")
        missing = await client.delete(f"/api/v1/submissions/{submission_id}")

    assert deleted.status_code == 200
    assert missing.status_code == 404
    assert await _count_submissions(id=submission_id) == 0


@pytest.mark.asyncio
async def test_former_member_cannot_delete_group_submission(fake_judge, make_photo, login_as):
    photo_id = await make_photo(SEED_USER_ID)
    async with _client(await login_as("hunter")) as client:
        created = await client.post(
            "/api/v1/submissions",
            json={"task_id": 1, "photo_id": photo_id, "group_id": SEED_GROUP_ID},
        )
        submission_id = created.json()["data"]["id"]

        await client.delete(f"/api/v1/groups/{SEED_GROUP_ID}/membership")
        feed = await client.get("/api/v1/submissions", params={"group_id": SEED_GROUP_ID})
        denied = await client.delete(f"/api/v1/submissions/{submission_id}")
        rejoined = await client.post(f"/api/v1/groups/{SEED_GROUP_ID}/join")

    assert feed.status_code == 403
    assert denied.status_code == 403
    assert rejoined.status_code == 201
    assert await _count_submissions(id=submission_id) == 1
