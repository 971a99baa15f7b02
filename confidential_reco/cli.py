#!/usr/bin/env python3
"""
ConfidentialReco Command Line Interface

Usage:
    confidential-reco score --income N --assets N --risk N --goals N
    confidential-reco keygen --key-id <kid> [--secrets-dir DIR] [--trust-dir DIR]
    confidential-reco demo --income N --assets N --risk N --goals N
"""

import argparse
import json
import os
import sys

from .config import LOG_JSON, LOG_LEVEL, invalidate_config_cache
from .logging_config import configure_logging


def save_json(data: dict, path: str):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def cmd_score(args):
    """Run the scoring policy on plaintext values."""
    from .engine import compute, lookup_product

    product_id, match_score = compute(args.income, args.assets, args.risk, args.goals)
    product = lookup_product(product_id)
    print(json.dumps({
        "product_id": product_id,
        "match_score": match_score,
        "product": product.to_dict() if product else None,
    }, indent=2))
    return 0


def cmd_keygen(args):
    """Generate an oracle signing key and a trust store holding its public key."""
    from .signing import OracleTrustStore, generate_oracle_key

    os.makedirs(args.secrets_dir, exist_ok=True)
    os.makedirs(args.trust_dir, exist_ok=True)

    kp = generate_oracle_key(args.key_id)
    key_path = os.path.join(args.secrets_dir, f"{args.key_id}.json")
    trust_path = os.path.join(args.trust_dir, "oracle_trust_store.json")

    save_json(kp.to_secret_dict(), key_path)
    store = OracleTrustStore.from_key_pairs([kp], quorum=1)
    store.trust_store_id = args.trust_store_id
    save_json(store.to_dict(), trust_path)
    invalidate_config_cache()

    print(f"Signing key saved to: {key_path}")
    print(f"Trust store saved to: {trust_path}")
    return 0


def cmd_demo(args):
    """Walk one profile through submit, decrypt, compute and reveal."""
    from .advisor import create_local_advisor

    advisor, oracle = create_local_advisor()

    profile_id = advisor.submit_plaintext_profile(args.income, args.assets, args.risk, args.goals)
    print(f"Profile {profile_id} submitted", file=sys.stderr)

    request_id = advisor.request_profile_decryption(profile_id)
    print(f"Decryption request {request_id} issued", file=sys.stderr)
    outcome = oracle.deliver(request_id)
    recommendation_id = outcome.recommendation_id
    print(f"Recommendation {recommendation_id} generated (confidential)", file=sys.stderr)

    reveal_id = advisor.request_reveal(recommendation_id)
    oracle.deliver(reveal_id)
    result = advisor.get_revealed_result(recommendation_id)

    print(json.dumps({
        "profile_id": profile_id,
        "recommendation_id": recommendation_id,
        "result": result.to_dict(),
        "events": [e.to_dict() for e in advisor.events.query()],
    }, indent=2))
    return 0


def _add_profile_args(p):
    p.add_argument("--income", type=int, required=True)
    p.add_argument("--assets", type=int, required=True)
    p.add_argument("--risk", type=int, required=True, help="Risk tolerance score")
    p.add_argument("--goals", type=int, required=True, help="Goal code")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="confidential-reco",
        description="Confidential financial recommendation workflow"
    )
    parser.add_argument("--log-level", default=LOG_LEVEL)
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_score = subparsers.add_parser("score", help="Score plaintext profile values")
    _add_profile_args(p_score)
    p_score.set_defaults(func=cmd_score)

    p_keygen = subparsers.add_parser("keygen", help="Generate an oracle signing key")
    p_keygen.add_argument("--key-id", default="oracle-01")
    p_keygen.add_argument("--secrets-dir", default="secrets")
    p_keygen.add_argument("--trust-dir", default="trust")
    p_keygen.add_argument("--trust-store-id", default="confidential-reco-trust-store")
    p_keygen.set_defaults(func=cmd_keygen)

    p_demo = subparsers.add_parser("demo", help="Run the full workflow against a local oracle")
    _add_profile_args(p_demo)
    p_demo.set_defaults(func=cmd_demo)

    args = parser.parse_args(argv)
    # stdout carries command output
    configure_logging(level=args.log_level, json_format=LOG_JSON, stream=sys.stderr)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
