from fastapi.testclient import TestClient

from confidential_reco import create_local_advisor
from confidential_reco.api import create_app
from confidential_reco.util import b64e

PROFILE = {"income": 150000, "assets": 10000, "risk_tolerance": 10, "goals": 2}


def submit(client, **overrides):
    r = client.post("/profiles/plaintext", json={**PROFILE, **overrides})
    assert r.status_code == 200
    return r.json()["profile_id"]


# HTTP-01: Full workflow through the local oracle
def test_http01_full_workflow(client):
    pid = submit(client)
    assert pid == 1

    r = client.post(f"/profiles/{pid}/decrypt")
    assert r.status_code == 200
    assert r.json() == {"request_id": 1, "subject_id": pid}

    assert client.post("/oracle/deliver").json() == {"delivered": 1}
    rec_ids = client.get(f"/profiles/{pid}").json()["recommendation_ids"]
    assert rec_ids == [1]

    rec = client.get("/recommendations/1").json()
    assert rec["profile_id"] == pid
    assert rec["result"] == {"is_revealed": False}

    assert client.post("/recommendations/1/reveal").status_code == 200
    client.post("/oracle/deliver")

    result = client.get("/recommendations/1").json()["result"]
    assert result["is_revealed"] is True
    assert (result["product_id"], result["match_score"]) == (2, 45)
    assert result["product"]["category"] == "fund"

    events = [e["event_type"] for e in client.get("/events").json()]
    assert events == [
        "ProfileSubmitted",
        "DecryptionRequested",
        "RecommendationGenerated",
        "DecryptionRequested",
        "ResultRevealed",
    ]
    assert len(client.get("/events", params={"event_type": "DecryptionRequested"}).json()) == 2


# HTTP-02: Oracle callback accepted once, replay rejected
def test_http02_callback_replay(client, local):
    _, oracle = local
    pid = submit(client)
    request_id = client.post(f"/profiles/{pid}/decrypt").json()["request_id"]
    cleartexts, proof = oracle.decrypt(request_id)
    body = {"request_id": request_id, "cleartexts": cleartexts.hex(), "proof_b64": b64e(proof)}

    r1 = client.post("/oracle/callback", json=body)
    assert r1.status_code == 200
    assert r1.json() == {
        "request_id": request_id,
        "kind": "ProfileDecrypt",
        "recommendation_id": 1,
        "revealed": False,
    }

    r2 = client.post("/oracle/callback", json=body)
    assert r2.status_code == 409
    assert r2.json()["error"] == "UNKNOWN_REQUEST"


# HTTP-03: Tampered cleartexts -> 403
def test_http03_invalid_proof(client, local):
    _, oracle = local
    pid = submit(client)
    request_id = client.post(f"/profiles/{pid}/decrypt").json()["request_id"]
    _, proof = oracle.decrypt(request_id)
    forged = (b"\x00" * 31 + b"\x07") * 4
    r = client.post("/oracle/callback", json={
        "request_id": request_id, "cleartexts": forged.hex(), "proof_b64": b64e(proof),
    })
    assert r.status_code == 403
    assert r.json()["error"] == "INVALID_PROOF"
    assert client.get(f"/profiles/{pid}").json()["recommendation_ids"] == []


# HTTP-04: Undecodable callback body -> 422
def test_http04_undecodable_callback(client):
    r = client.post("/oracle/callback", json={
        "request_id": 1, "cleartexts": "zz", "proof_b64": "AA==",
    })
    assert r.status_code == 422


# HTTP-05: Unknown subjects -> 404
def test_http05_not_found(client):
    assert client.get("/profiles/0").status_code == 404
    assert client.get("/profiles/7").json()["error"] == "NOT_FOUND"
    assert client.post("/profiles/7/decrypt").status_code == 404
    assert client.get("/recommendations/1").status_code == 404


# HTTP-06: Second request while pending -> 409
def test_http06_pending(client):
    pid = submit(client)
    assert client.post(f"/profiles/{pid}/decrypt").status_code == 200
    r = client.post(f"/profiles/{pid}/decrypt")
    assert r.status_code == 409
    assert r.json()["error"] == "REQUEST_ALREADY_PENDING"


# HTTP-07: Reveal twice -> 409 ALREADY_REVEALED
def test_http07_already_revealed(client):
    pid = submit(client)
    client.post(f"/profiles/{pid}/decrypt")
    client.post("/oracle/deliver")
    client.post("/recommendations/1/reveal")
    client.post("/oracle/deliver")
    r = client.post("/recommendations/1/reveal")
    assert r.status_code == 409
    assert r.json()["error"] == "ALREADY_REVEALED"


# HTTP-08: Encrypted submission with handles from the coprocessor
def test_http08_encrypted_submission(client, local):
    _, oracle = local
    handles = [oracle.encrypt_u32(v).hex() for v in (10000, 1000, 5, 0)]
    r = client.post("/profiles", json={
        "encrypted_income": handles[0],
        "encrypted_assets": handles[1],
        "encrypted_risk_tolerance": handles[2],
        "encrypted_goals": handles[3],
    })
    assert r.status_code == 200
    pid = r.json()["profile_id"]
    assert client.get(f"/profiles/{pid}").json()["encrypted_goals"] == handles[3]


def test_bad_handle_rejected(client):
    r = client.post("/profiles", json={
        "encrypted_income": "0x1234",
        "encrypted_assets": "0x1234",
        "encrypted_risk_tolerance": "0x1234",
        "encrypted_goals": "0x1234",
    })
    assert r.status_code == 422


def test_plaintext_out_of_range_rejected(client):
    r = client.post("/profiles/plaintext", json={**PROFILE, "income": 2 ** 32})
    assert r.status_code == 422


def test_owner_enforcement():
    advisor, oracle = create_local_advisor(enforce_ownership=True)
    client = TestClient(create_app(advisor, oracle))
    pid = submit(client, owner="alice")

    r = client.post(f"/profiles/{pid}/decrypt", json={"caller": "bob"})
    assert r.status_code == 403
    assert r.json()["error"] == "UNAUTHORIZED"
    assert client.post(f"/profiles/{pid}/decrypt", json={"caller": "alice"}).status_code == 200


def test_health(client, local):
    _, oracle = local
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["oracle_available"] is True

    oracle.available = False
    assert client.get("/health").status_code == 503
    pid = submit(client)
    r = client.post(f"/profiles/{pid}/decrypt")
    assert r.status_code == 503
    assert r.json()["error"] == "ORACLE_UNAVAILABLE"


def test_request_id_echoed(client):
    r = client.get("/health", headers={"x-request-id": "req-123"})
    assert r.headers["x-request-id"] == "req-123"
