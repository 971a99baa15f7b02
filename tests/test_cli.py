import argparse
import json

from confidential_reco import OracleTrustStore, load_oracle_key
from confidential_reco.cli import cmd_demo, cmd_keygen, cmd_score
from confidential_reco.config import load_oracle_trust_store


def profile_args(income, assets, risk, goals):
    return argparse.Namespace(income=income, assets=assets, risk=risk, goals=goals)


def test_score(capsys):
    assert cmd_score(profile_args(50000, 600000, 80, 1)) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["product_id"] == 3
    assert out["match_score"] == 100
    assert out["product"]["name"] == "High Growth Equity Portfolio"


def test_keygen_writes_usable_key_and_trust_store(tmp_path, capsys):
    args = argparse.Namespace(
        key_id="oracle-07",
        secrets_dir=str(tmp_path / "secrets"),
        trust_dir=str(tmp_path / "trust"),
        trust_store_id="test-store",
    )
    assert cmd_keygen(args) == 0
    assert "Trust store saved" in capsys.readouterr().out

    kp = load_oracle_key(tmp_path / "secrets" / "oracle-07.json")
    with open(tmp_path / "trust" / "oracle_trust_store.json", encoding="utf-8") as f:
        store = OracleTrustStore.from_dict(json.load(f))

    assert store.trust_store_id == "test-store"
    assert store.key_ids == ["oracle-07"]
    assert store.to_dict()["oracle_keys"]["oracle-07"] == kp.public_key_b64()


def test_demo(capsys):
    assert cmd_demo(profile_args(10000, 1000, 5, 0)) == 0
    captured = capsys.readouterr()
    out = json.loads(captured.out)
    assert out["result"]["is_revealed"] is True
    assert out["result"]["product_id"] == 1
    assert out["result"]["match_score"] == 6
    assert len(out["events"]) == 5
    assert "Recommendation 1 generated" in captured.err


def test_keygen_refreshes_cached_trust_store(tmp_path):
    def keygen(key_id):
        cmd_keygen(argparse.Namespace(
            key_id=key_id,
            secrets_dir=str(tmp_path / "secrets"),
            trust_dir=str(tmp_path / "trust"),
            trust_store_id="test-store",
        ))

    path = str(tmp_path / "trust" / "oracle_trust_store.json")
    keygen("oracle-old")
    assert list(load_oracle_trust_store(path)["oracle_keys"]) == ["oracle-old"]

    keygen("oracle-new")
    assert list(load_oracle_trust_store(path)["oracle_keys"]) == ["oracle-new"]
