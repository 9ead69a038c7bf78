"""HTTP surface: routes delegate to the engine and failures share one error shape."""

from datetime import timedelta

from mathstreak.core.store import ProgressStore
from mathstreak.models.streak import StreakRecord

DAY = "2024-03-04"


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "profile": "production"}
    assert resp.headers.get("x-request-id")


def test_request_id_is_echoed(client):
    resp = client.get("/healthz", headers={"x-request-id": "rid-123"})
    assert resp.headers["x-request-id"] == "rid-123"


def test_today_set(client):
    resp = client.get("/v1/challenges/today", params={"today": DAY})
    assert resp.status_code == 200
    body = resp.json()
    assert body["date"] == DAY
    assert len(body["challenges"]) == 5
    assert body["current_unlocked_index"] == 0
    assert body["stats"]["locked"] == 4


def test_play_flow(client):
    start = client.post("/v1/challenges/0/start", params={"today": DAY})
    assert start.status_code == 200
    assert start.json()["challenge"]["state"] == "in_progress"

    answer = client.post("/v1/challenges/0/answer", params={"today": DAY}, json={"correct": False})
    assert answer.json()["error_count"] == 1

    advance = client.post("/v1/challenges/0/advance", params={"today": DAY})
    assert advance.json()["is_complete"] is False

    early = client.post("/v1/challenges/0/complete", params={"today": DAY})
    assert early.status_code == 409
    assert early.json()["error"]["code"] == "tasks_remaining"

    for _ in range(7):
        advance = client.post("/v1/challenges/0/advance", params={"today": DAY})
    assert advance.json()["is_complete"] is True

    complete = client.post("/v1/challenges/0/complete", params={"today": DAY}, json={"error_count": 1})
    assert complete.status_code == 200
    body = complete.json()
    assert body["success"] is True
    assert body["new_streak"] == 1
    assert body["challenge"]["state"] == "completed"

    analysis = client.get("/v1/challenges/0/analysis", params={"today": DAY})
    assert analysis.json()["rating"] == "good"


def test_invalid_transition_uses_error_shape(client):
    resp = client.post("/v1/challenges/2/start", params={"today": DAY})
    assert resp.status_code == 409
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "invalid_transition"
    assert body["error"]["request_id"] == rid
    assert body["detail"]


def test_unknown_challenge_is_404(client):
    resp = client.post("/v1/challenges/12/start", params={"today": DAY})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_fail_and_reset(client):
    client.post("/v1/challenges/0/start", params={"today": DAY})
    failed = client.post("/v1/challenges/0/fail", params={"today": DAY})
    assert failed.json()["challenge"]["state"] == "failed"
    assert client.get("/v1/challenges/0/can-start", params={"today": DAY}).json()["reason"] == "already_attempted"
    reset = client.post("/v1/challenges/0/reset", params={"today": DAY})
    assert reset.json()["challenge"]["state"] == "available"


def test_daily_reward_before_completion_conflicts(client):
    resp = client.post("/v1/challenges/today/reward", params={"today": DAY})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "not_all_completed"


def test_diamonds_spend_insufficient(client):
    assert client.get("/v1/diamonds").json()["current"] == 0
    resp = client.post("/v1/diamonds/spend", json={"amount": 1, "purpose": "shop"})
    assert resp.status_code == 402
    assert resp.json()["error"]["code"] == "insufficient_funds"


def test_diamonds_spend_invalid_amount(client):
    resp = client.post("/v1/diamonds/spend", json={"amount": 0})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_amount"


def test_diamonds_refresh(client, engine):
    engine.progress.record_challenge_completion(80)
    resp = client.post("/v1/diamonds/refresh")
    assert resp.json()["awarded"] == 1
    assert client.post("/v1/diamonds/refresh").json()["awarded"] == 0


def test_streak_endpoints(client, engine, today):
    record = StreakRecord(current_streak=5, longest_streak=5, last_active_date=today - timedelta(days=2))
    engine.store.save(engine.store.key(ProgressStore.STREAK), record.to_dict())

    status = client.get("/v1/streaks/status", params={"today": DAY}).json()
    assert status["loss_reason"] == "frozen"
    assert client.get("/v1/streaks/info", params={"today": DAY}).json()["can_unfreeze"] is True

    restore = client.post("/v1/streaks/restore", params={"today": DAY})
    assert restore.status_code == 409

    unfreeze = client.post("/v1/streaks/unfreeze", params={"today": DAY})
    assert unfreeze.json()["new_streak"] == 6

    handled = client.post("/v1/streaks/handled", params={"today": DAY})
    assert handled.json()["status_handled_date"] == DAY

    accepted = client.post("/v1/streaks/accept-loss")
    assert accepted.json()["new_streak"] == 0


def test_premium_start_without_spawn(client, engine, today):
    key = engine.store.key(ProgressStore.PREMIUM_SPAWN, today)
    engine.store.save(key, {"date": DAY, "rush": False, "nut": False})

    overview = client.get("/v1/premium/today", params={"today": DAY}).json()
    assert set(overview) == {"date", "roll", "nut", "rush"}
    assert overview["nut"]["spawned"] is False

    resp = client.post("/v1/premium/nut/start", params={"today": DAY})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "not_spawned"


def test_premium_unknown_kind_rejected(client):
    resp = client.post("/v1/premium/sprint/start", params={"today": DAY})
    assert resp.status_code == 422
