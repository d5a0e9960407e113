"""Tests for the khipu codec server.

Runs the real application factory with an in-memory content store.
"""

from __future__ import annotations

import asyncio
import base64
import json

import pytest
from fastapi.testclient import TestClient

from khipu import cipher
from khipu.app import create_app, lifespan
from khipu.config import DEV_KEY, KhipuConfig
from khipu.errors import ConfigError
from khipu.payload import (
    ENCODING_ENCRYPTED,
    ENCODING_JSON,
    ENCODING_ZLIB,
    METADATA_ENCODING,
    METADATA_ENCRYPTION_KEY_ID,
    Payload,
)
from khipu.store import COLLECTION

API_KEY = "codec-key-khipu-2026"
K2 = (b"2" * 32).hex()


def _config(**overrides) -> KhipuConfig:
    keys = {"test-key": DEV_KEY, "k2": K2}
    return KhipuConfig(keys=keys, **overrides)


@pytest.fixture
def client():
    with TestClient(create_app(_config())) as c:
        yield c


@pytest.fixture
def compressed_client():
    with TestClient(create_app(_config(compress=True))) as c:
        yield c


@pytest.fixture
def authed_client():
    with TestClient(create_app(_config(api_key=API_KEY))) as c:
        yield c


def _body(*payloads: Payload) -> dict:
    return {"payloads": [p.to_json() for p in payloads]}


def _payloads(response) -> list[Payload]:
    return [Payload.from_json(p) for p in response.json()["payloads"]]


class TestMeta:
    def test_health(self, client):
        r = client.get("/api/v1/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok", "service": "khipu"}

    def test_version(self, client):
        r = client.get("/api/v1/version")
        assert r.status_code == 200
        assert r.json()["server"] == "0.1.0"
        assert ENCODING_ENCRYPTED in r.json()["encodings"]


class TestEncodeDecode:
    def test_round_trip(self, client):
        r = client.post("/api/v1/encode", json=_body(Payload.json({"user": "alice"})))
        assert r.status_code == 200
        [protected] = _payloads(r)
        assert protected.encoding == ENCODING_ENCRYPTED
        assert protected.metadata[METADATA_ENCRYPTION_KEY_ID] == b"test-key"

        r = client.post("/api/v1/decode", json=_body(protected))
        assert r.status_code == 200
        [restored] = _payloads(r)
        assert json.loads(restored.data) == {"user": "alice"}
        assert restored.encoding == ENCODING_JSON

    def test_record_lands_in_store(self, client):
        r = client.post("/api/v1/encode", json=_body(Payload.json({"user": "alice"})))
        [protected] = _payloads(r)
        token = cipher.decrypt(protected.data, base64.b64decode(DEV_KEY)).decode()
        store = client.app.state.store
        assert store.retrieve(COLLECTION, token) == {"_id": token, "user": "alice"}

    def test_compressed_round_trip(self, compressed_client):
        r = compressed_client.post("/api/v1/encode", json=_body(Payload.json({"n": 1})))
        [wire] = _payloads(r)
        assert wire.encoding == ENCODING_ZLIB
        r = compressed_client.post("/api/v1/decode", json=_body(wire))
        assert json.loads(_payloads(r)[0].data) == {"n": 1}

    def test_key_id_header_selects_key(self, client):
        r = client.post(
            "/api/v1/encode",
            json=_body(Payload.json({"a": 1})),
            headers={"X-Encryption-Key-Id": "k2"},
        )
        [protected] = _payloads(r)
        assert protected.metadata[METADATA_ENCRYPTION_KEY_ID] == b"k2"
        r = client.post("/api/v1/decode", json=_body(protected))
        assert json.loads(_payloads(r)[0].data) == {"a": 1}

    def test_batch_order_and_passthrough(self, client):
        plain = Payload(data=b"\x00raw", metadata={METADATA_ENCODING: b"binary/plain"})
        r = client.post("/api/v1/encode", json=_body(Payload.json({"i": 0}), Payload.json({"i": 1})))
        first, second = _payloads(r)
        r = client.post("/api/v1/decode", json=_body(second, plain, first))
        out = _payloads(r)
        assert len(out) == 3
        assert json.loads(out[0].data) == {"i": 1}
        assert out[1] == plain
        assert json.loads(out[2].data) == {"i": 0}

    def test_empty_batch(self, client):
        r = client.post("/api/v1/encode", json={"payloads": []})
        assert r.status_code == 200
        assert r.json() == {"payloads": []}


class TestErrors:
    def test_non_json_payload_400(self, client):
        r = client.post("/api/v1/encode", json=_body(Payload(data=b"not json")))
        assert r.status_code == 400

    def test_bad_base64_400(self, client):
        r = client.post("/api/v1/decode", json={"payloads": [{"metadata": {}, "data": "!!!"}]})
        assert r.status_code == 400

    def test_missing_key_id_400(self, client):
        p = Payload(data=b"x" * 40, metadata={METADATA_ENCODING: ENCODING_ENCRYPTED.encode()})
        r = client.post("/api/v1/decode", json=_body(p))
        assert r.status_code == 400
        assert "key id" in r.json()["detail"]

    def test_unknown_key_id_400(self, client):
        r = client.post(
            "/api/v1/encode",
            json=_body(Payload.json({"a": 1})),
            headers={"X-Encryption-Key-Id": "nope"},
        )
        assert r.status_code == 400

    def test_tampered_ciphertext_422(self, client):
        r = client.post("/api/v1/encode", json=_body(Payload.json({"a": 1})))
        [protected] = _payloads(r)
        flipped = bytes([protected.data[-1] ^ 0x01])
        tampered = Payload(data=protected.data[:-1] + flipped, metadata=protected.metadata)
        r = client.post("/api/v1/decode", json=_body(tampered))
        assert r.status_code == 422

    def test_unknown_token_404(self, client):
        ciphertext = cipher.encrypt(b"00000000-0000-4000-8000-000000000000", base64.b64decode(DEV_KEY))
        p = Payload(
            data=ciphertext,
            metadata={
                METADATA_ENCODING: ENCODING_ENCRYPTED.encode(),
                METADATA_ENCRYPTION_KEY_ID: b"test-key",
            },
        )
        r = client.post("/api/v1/decode", json=_body(p))
        assert r.status_code == 404


class TestStartup:
    def test_bad_key_material_fails_before_store_opens(self, monkeypatch):
        opened = []
        monkeypatch.setattr("khipu.app.store_from_config", lambda config: opened.append(config))
        app = create_app(KhipuConfig(keys={"test-key": "not a key"}))

        async def start():
            async with lifespan(app):
                pass

        with pytest.raises(ConfigError):
            asyncio.run(start())
        assert opened == []


class TestAuthEnforcement:
    def test_dev_mode_no_key_allows_all(self, client):
        assert client.get("/api/v1/health").status_code == 200
        assert client.post("/api/v1/encode", json={"payloads": []}).status_code == 200

    def test_required_key_rejects_no_key(self, authed_client):
        r = authed_client.get("/api/v1/health")
        assert r.status_code == 401
        assert "Invalid or missing" in r.json()["detail"]

    def test_required_key_rejects_wrong_key(self, authed_client):
        r = authed_client.post(
            "/api/v1/decode",
            json={"payloads": []},
            headers={"X-API-Key": "wrong-key"},
        )
        assert r.status_code == 401

    def test_required_key_accepts_correct_key(self, authed_client):
        r = authed_client.post(
            "/api/v1/encode",
            json=_body(Payload.json({"a": 1})),
            headers={"X-API-Key": API_KEY},
        )
        assert r.status_code == 200
