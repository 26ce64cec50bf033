import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

from src.errors import ConfigurationError, UpstreamError
from src.models.visitor import Visitor
from src.models.vote_snapshot import VoteSnapshot
from src.services import roll_engine
from src.utils import utcnow

COOKIE_NAME = "slot_user_token"
IP_A = {"x-forwarded-for": "198.51.100.10"}
IP_B = {"x-forwarded-for": "198.51.100.20, 10.0.0.1"}


def _register(client, headers=IP_A):
    response = client.get("/api/rolls/stats", headers=headers)
    assert response.status_code == 200, response.text
    return response


def test_health_check(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_votes_returns_count_and_records_snapshot(client, vote_source, db):
    vote_source.votes = 42
    response = client.get("/api/votes")
    assert response.status_code == 200
    assert response.json() == {"votes": 42}

    snapshots = db.query(VoteSnapshot).all()
    assert [s.votes for s in snapshots] == [42]


def test_votes_snapshot_is_throttled(client, vote_source, db):
    client.get("/api/votes")
    vote_source.votes = 11
    client.get("/api/votes")
    assert db.query(VoteSnapshot).count() == 1


def test_history_ascending_camel_case(client, db):
    now = utcnow()
    db.add(VoteSnapshot(votes=20, recorded_at=now))
    db.add(VoteSnapshot(votes=10, recorded_at=now - timedelta(hours=1)))
    db.commit()

    response = client.get("/api/history")
    assert response.status_code == 200
    history = response.json()["history"]
    assert [h["votes"] for h in history] == [10, 20]
    assert set(history[0]) == {"recordedAt", "votes"}


def test_timeline(client, vote_source):
    vote_source._timestamps = [300, 100, 200]
    response = client.get("/api/votes/timeline")
    assert response.status_code == 200
    assert response.json() == {"timestamps": [100, 200, 300]}


def test_public_config(client, monkeypatch):
    monkeypatch.setenv("TOTAL_VOTES_NEEDED", "200")
    monkeypatch.setenv("VOTES_PER_ROLL", "5")
    monkeypatch.setenv("SIGN_URL", "https://forms.example.com/sign")
    response = client.get("/api/config")
    assert response.json() == {
        "totalVotesNeeded": 200,
        "votesPerRoll": 5,
        "signUrl": "https://forms.example.com/sign",
    }


def test_stats_creates_visitor_and_sets_cookie(client, db):
    response = _register(client)

    assert response.json() == {
        "availableRolls": 10,
        "rollsMade": 0,
        "rollsBonuses": 0,
        "totalVotes": 10,
        "votesPerRoll": 1,
    }
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    assert "Max-Age=31536000" in set_cookie
    assert "Secure" not in set_cookie

    token = client.cookies.get(COOKIE_NAME)
    assert db.query(Visitor).filter(Visitor.cookie_token == token).count() == 1


def test_stats_does_not_resend_matching_cookie(client):
    _register(client)
    response = _register(client)
    assert "set-cookie" not in response.headers


def test_stats_secure_cookie_in_production(client, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    response = _register(client)
    assert "Secure" in response.headers["set-cookie"]


def test_stats_uses_votes_per_roll(client, vote_source, monkeypatch):
    monkeypatch.setenv("VOTES_PER_ROLL", "3")
    vote_source.votes = 10
    body = _register(client).json()
    assert body["availableRolls"] == 3
    assert body["votesPerRoll"] == 3


def test_cleared_cookie_recovers_identity_by_ip(client, db):
    _register(client)
    token = client.cookies.get(COOKIE_NAME)
    client.cookies.clear()

    response = _register(client)
    assert response.headers["set-cookie"].startswith(f"{COOKIE_NAME}={token}")
    assert db.query(Visitor).count() == 1


def test_roll_end_to_end(client, vote_source):
    vote_source.votes = 10
    _register(client)

    response = client.post("/api/rolls/roll", headers=IP_A)
    assert response.status_code == 200, response.text
    body = response.json()

    assert len(body["positions"]) == 3
    assert [s["position"] for s in body["symbols"]] == body["positions"]
    assert {s["name"] for s in body["symbols"]} <= {"cherry", "lemon", "orange", "plum", "seven"}
    assert len(body["resultHash"]) == 64
    assert body["rollsMade"] == 1
    assert body["rollsBonuses"] == body["bonusWon"]
    assert body["availableRolls"] == 9 + body["bonusWon"]

    stats = _register(client).json()
    assert stats["rollsMade"] == 1
    assert stats["availableRolls"] == body["availableRolls"]


def test_roll_without_cookie_is_401(client):
    response = client.post("/api/rolls/roll", headers=IP_A)
    assert response.status_code == 401
    assert response.json()["reason"] == "missing_token"


def test_roll_with_unknown_cookie_is_404(client):
    client.cookies.set(COOKIE_NAME, "does-not-exist")
    response = client.post("/api/rolls/roll", headers=IP_A)
    assert response.status_code == 404
    assert response.json()["reason"] == "visitor_not_found"


def test_roll_from_unknown_ip_is_403(client):
    _register(client, IP_A)
    response = client.post("/api/rolls/roll", headers=IP_B)
    assert response.status_code == 403
    assert response.json()["reason"] == "session_not_found"


def test_roll_without_entitlement_is_403(client, vote_source, db):
    vote_source.votes = 0
    _register(client)

    response = client.post("/api/rolls/roll", headers=IP_A)
    assert response.status_code == 403
    assert response.json()["reason"] == "no_rolls_available"
    assert db.query(Visitor).one().rolls_made == 0


def test_roll_rechecks_votes_at_roll_time(client, vote_source):
    vote_source.votes = 1
    _register(client)
    calls_before = vote_source.calls
    client.post("/api/rolls/roll", headers=IP_A)
    assert vote_source.calls == calls_before + 1


def test_upstream_failure_is_503_and_creates_nothing(client, vote_source, db):
    vote_source.error = UpstreamError("No se pudo consultar la hoja de votos")

    response = client.get("/api/rolls/stats", headers=IP_A)
    assert response.status_code == 503
    assert response.json()["reason"] == "upstream_unavailable"
    assert db.query(Visitor).count() == 0

    assert client.get("/api/votes").status_code == 503
    assert db.query(VoteSnapshot).count() == 0


def test_configuration_failure_is_500(client, vote_source):
    vote_source.error = ConfigurationError("GOOGLE_SPREADSHEET_ID no está configurada")
    response = client.get("/api/votes")
    assert response.status_code == 500
    assert response.json() == {
        "detail": "GOOGLE_SPREADSHEET_ID no está configurada",
        "reason": "configuration_error",
    }


def test_history_timestamps_carry_utc_offset(client, vote_source):
    client.get("/api/votes")

    recorded_at = client.get("/api/history").json()["history"][0]["recordedAt"]
    assert recorded_at.endswith("+00:00") or recorded_at.endswith("Z")
    parsed = datetime.fromisoformat(recorded_at.replace("Z", "+00:00"))
    assert parsed.utcoffset() == timedelta(0)


def test_only_documented_utility_routes(client):
    assert client.get("/").status_code == 200
    assert client.get("/api/ping").status_code == 404
    assert client.get("/favicon.ico").status_code == 404


def test_parallel_rolls_spend_single_unit_once(client, vote_source, db, monkeypatch):
    # Sin premios, una sola tirada disponible: sólo un request puede ganar
    monkeypatch.setattr(roll_engine, "WINNING_BONUSES", {})
    vote_source.votes = 1
    _register(client)

    workers = 6
    barrier = threading.Barrier(workers)

    def fire():
        barrier.wait()
        return client.post("/api/rolls/roll", headers=IP_A)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        responses = list(pool.map(lambda _: fire(), range(workers)))

    statuses = sorted(r.status_code for r in responses)
    assert statuses == [200] + [403] * (workers - 1)
    assert all(r.json()["reason"] == "no_rolls_available" for r in responses if r.status_code == 403)

    visitor = db.query(Visitor).one()
    assert visitor.rolls_made == 1
    assert visitor.rolls_bonuses == 0
