"""
Signing, Codec and Event Log Test Suite
"""

import json
import os
import tempfile
import unittest

from confidential_reco import (
    EventLog,
    EventType,
    MalformedPayload,
    OracleSigner,
    OracleTrustStore,
    decode_cleartexts,
    decryption_message,
    encode_cleartexts,
    generate_oracle_key,
    load_oracle_key,
    verify_chain,
    verify_signature,
)
from confidential_reco.config import CachedConfig


HANDLES = (b"\x01" * 32, b"\x02" * 32)


class TestCleartextCodec(unittest.TestCase):

    def test_words_are_big_endian(self):
        data = encode_cleartexts([1, 2 ** 32 - 1])
        self.assertEqual(len(data), 64)
        self.assertEqual(data[31], 1)
        self.assertEqual(data[:31], b"\x00" * 31)
        self.assertEqual(data[60:64], b"\xff\xff\xff\xff")

    def test_decode(self):
        self.assertEqual(decode_cleartexts(encode_cleartexts([3, 100]), 2), (3, 100))

    def test_wrong_length(self):
        with self.assertRaises(MalformedPayload):
            decode_cleartexts(encode_cleartexts([3, 100]), 4)
        with self.assertRaises(MalformedPayload):
            decode_cleartexts(b"\x00" * 33, 1)

    def test_not_bytes(self):
        with self.assertRaises(MalformedPayload):
            decode_cleartexts("00" * 64, 2)

    def test_word_out_of_range(self):
        data = (2 ** 40).to_bytes(32, "big")
        with self.assertRaises(MalformedPayload) as ctx:
            decode_cleartexts(data, 1)
        self.assertEqual(ctx.exception.details, {"index": 0})

    def test_encode_rejects_out_of_range(self):
        with self.assertRaises(ValueError):
            encode_cleartexts([-1])


class TestOracleSigning(unittest.TestCase):

    def setUp(self):
        self.kp = generate_oracle_key("oracle-01")
        self.signer = OracleSigner([self.kp])
        self.store = OracleTrustStore.from_key_pairs([self.kp])
        self.cleartexts = encode_cleartexts([2, 45])

    def test_valid_proof(self):
        proof = self.signer.sign_decryption(5, HANDLES, self.cleartexts)
        result = self.store.verify_decryption_proof(5, HANDLES, self.cleartexts, proof)
        self.assertTrue(result.valid)
        self.assertEqual(result.signers, ["oracle-01"])

    def test_proof_bound_to_request_id(self):
        proof = self.signer.sign_decryption(5, HANDLES, self.cleartexts)
        result = self.store.verify_decryption_proof(6, HANDLES, self.cleartexts, proof)
        self.assertFalse(result.valid)
        self.assertIn("required", result.reason)

    def test_proof_bound_to_handles(self):
        proof = self.signer.sign_decryption(5, HANDLES, self.cleartexts)
        swapped = tuple(reversed(HANDLES))
        self.assertFalse(self.store.verify_decryption_proof(5, swapped, self.cleartexts, proof).valid)

    def test_untrusted_key(self):
        other = OracleSigner([generate_oracle_key("oracle-02")])
        proof = other.sign_decryption(5, HANDLES, self.cleartexts)
        self.assertFalse(self.store.verify_decryption_proof(5, HANDLES, self.cleartexts, proof).valid)

    def test_message_is_canonical(self):
        message = decryption_message(5, HANDLES, b"\x00")
        self.assertEqual(
            json.loads(message),
            {"cleartexts": "00", "handles": ["01" * 32, "02" * 32], "request_id": "5"},
        )
        self.assertNotIn(b" ", message)

    def test_verify_signature_rejects_garbage(self):
        self.assertFalse(verify_signature(b"data", b"short", self.kp.verify_key))
        self.assertFalse(verify_signature(b"data", b"\x00" * 64, b"bad key"))

    def test_non_bytes_cleartexts_rejected(self):
        proof = self.signer.sign_decryption(5, HANDLES, self.cleartexts)
        result = self.store.verify_decryption_proof(5, HANDLES, self.cleartexts.hex(), proof)
        self.assertFalse(result.valid)

    def test_quorum_must_be_positive(self):
        with self.assertRaises(ValueError):
            OracleTrustStore({}, quorum=0)

    def test_signer_requires_keys(self):
        with self.assertRaises(ValueError):
            OracleSigner([])


class TestTrustStoreFiles(unittest.TestCase):

    def test_round_trip(self):
        keys = [generate_oracle_key("a"), generate_oracle_key("b")]
        store = OracleTrustStore.from_key_pairs(keys, quorum=2)
        restored = OracleTrustStore.from_dict(store.to_dict())
        self.assertEqual(restored.key_ids, ["a", "b"])
        self.assertEqual(restored.quorum, 2)

        proof = OracleSigner(keys).sign_decryption(1, HANDLES, b"")
        self.assertTrue(restored.verify_decryption_proof(1, HANDLES, b"", proof).valid)

    def test_quorum_override(self):
        store = OracleTrustStore.from_key_pairs([generate_oracle_key("a")])
        self.assertEqual(OracleTrustStore.from_dict(store.to_dict(), quorum=3).quorum, 3)

    def test_load_signing_key(self):
        kp = generate_oracle_key("oracle-09")
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "oracle-09.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(kp.to_secret_dict(), f)
            loaded = load_oracle_key(path)
        self.assertEqual(loaded.key_id, "oracle-09")
        self.assertEqual(loaded.verify_key, kp.verify_key)

    def test_cached_loader_reloads_on_demand(self):
        cache = CachedConfig(ttl_seconds=3600)
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "store.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"quorum": 1}, f)
            self.assertEqual(cache.get_json(path), {"quorum": 1})

            with open(path, "w", encoding="utf-8") as f:
                json.dump({"quorum": 2}, f)
            self.assertEqual(cache.get_json(path), {"quorum": 1})
            cache.invalidate(path)
            self.assertEqual(cache.get_json(path), {"quorum": 2})


class TestEventLog(unittest.TestCase):

    def setUp(self):
        self.log = EventLog()
        self.log.emit(EventType.PROFILE_SUBMITTED, id=1, timestamp=100)
        self.log.emit(EventType.DECRYPTION_REQUESTED, request_id=1, subject_id=1)
        self.log.emit(EventType.RECOMMENDATION_GENERATED, recommendation_id=1)

    def test_sequence_and_chain(self):
        events = self.log.query()
        self.assertEqual([e.seq for e in events], [1, 2, 3])
        self.assertIsNone(events[0].prev_entry_hash)
        self.assertEqual(events[1].prev_entry_hash, events[0].entry_hash)
        self.assertTrue(verify_chain(events))
        self.assertTrue(events[0].entry_hash.startswith("sha256:"))

    def test_tampering_detected(self):
        events = self.log.query()
        events[1].data["subject_id"] = 2
        self.assertFalse(verify_chain(events))

    def test_gap_detected(self):
        events = self.log.query()
        self.assertFalse(verify_chain([events[0], events[2]]))

    def test_query_filters(self):
        self.assertEqual(len(self.log.query(EventType.DECRYPTION_REQUESTED)), 1)
        self.assertEqual([e.seq for e in self.log.query(since_seq=1)], [2, 3])

    def test_listeners(self):
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        self.log.subscribe(broken)
        self.log.subscribe(seen.append)
        with self.assertLogs("confidential_reco.events", level="ERROR"):
            event = self.log.emit(EventType.RESULT_REVEALED, recommendation_id=1)
        self.assertEqual(seen, [event])
        self.assertEqual(len(self.log), 4)

        self.log.unsubscribe(seen.append)
        self.log.emit(EventType.RESULT_REVEALED, recommendation_id=2)
        self.assertEqual(len(seen), 1)

    def test_to_dict(self):
        d = self.log.query()[0].to_dict()
        self.assertEqual(d["event_type"], "ProfileSubmitted")
        self.assertEqual(d["data"], {"id": 1, "timestamp": 100})
        self.assertTrue(d["timestamp"].endswith("Z"))

    def test_bounded(self):
        log = EventLog(max_records=2)
        for i in range(5):
            log.emit(EventType.RESULT_REVEALED, recommendation_id=i)
        events = log.query()
        self.assertEqual([e.seq for e in events], [4, 5])
        self.assertTrue(verify_chain(events))
