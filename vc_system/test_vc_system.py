"""
Credential Core Tests
=====================

Canonicalization, token codec and secp256k1 signing
"""

import pytest

from vc_system import token_codec
from vc_system.canonical import canonicalize
from vc_system.errors import EncodingError, InvalidKeyError, MalformedTokenError
from vc_system.key_manager import (
    Signature,
    candidate_addresses,
    did_from_address,
    generate_issuer_key,
    load_issuer_key,
    recover_address,
    recover_message_signer,
    sign,
    sign_message,
)

# Hardhat Account #0 (dev only)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class TestCanonicalizer:
    """Test deterministic serialization"""

    def test_insertion_order_does_not_matter(self):
        first = {"b": 1, "a": {"y": [1, 2], "x": "v"}}
        second = {"a": {"x": "v", "y": [1, 2]}, "b": 1}

        assert canonicalize(first) == canonicalize(second)

    def test_exact_output(self):
        value = {"b": 1, "a": [3, {"d": True, "c": None}], "e": 1.5}

        assert canonicalize(value) == b'{"a":[3,{"c":null,"d":true}],"b":1,"e":1.5}'

    def test_arrays_keep_order(self):
        assert canonicalize({"t": ["z", "a"]}) == b'{"t":["z","a"]}'

    def test_non_ascii_is_utf8(self):
        assert canonicalize({"name": "Zoë"}) == '{"name":"Zoë"}'.encode("utf-8")

    def test_accepts_objects_with_to_dict(self):
        class Claims:
            def to_dict(self):
                return {"b": 2, "a": 1}

        assert canonicalize(Claims()) == b'{"a":1,"b":2}'

    @pytest.mark.parametrize("value", [
        {"n": float("nan")},
        {"n": float("inf")},
        {"s": {1, 2}},
        {1: "numeric key"},
        {"nested": {"bytes": b"raw"}},
    ])
    def test_unrepresentable_values(self, value):
        with pytest.raises(EncodingError):
            canonicalize(value)


class TestTokenCodec:
    """Test token encoding and decoding"""

    def setup_method(self):
        self.header = {"alg": "ES256K-R", "typ": "JWT"}
        self.payload = {"sub": "did:example:abc123", "nbf": 1700000000, "vc": {"id": "urn:uuid:1"}}
        self.signature = bytes(range(65))

    def test_round_trip(self):
        token = token_codec.encode(self.header, self.payload, self.signature)
        decoded = token_codec.decode(token)

        assert decoded.header == self.header
        assert decoded.payload == self.payload
        assert decoded.signature == self.signature

    def test_no_padding_and_three_segments(self):
        token = token_codec.encode(self.header, self.payload, self.signature)

        assert "=" not in token
        assert token.count(".") == 2

    def test_signing_input_is_first_two_segments(self):
        token = token_codec.encode(self.header, self.payload, self.signature)
        decoded = token_codec.decode(token)

        assert decoded.signing_input == token.rsplit(".", 1)[0].encode("ascii")
        assert decoded.signing_input == token_codec.signing_input(self.header, self.payload)

    @pytest.mark.parametrize("token", [
        "onlyone",
        "two.segments",
        "a.b.c.d",
        "..",
    ])
    def test_rejects_wrong_segment_count(self, token):
        with pytest.raises(MalformedTokenError):
            token_codec.decode(token)

    def test_rejects_invalid_base64(self):
        good = token_codec.encode(self.header, self.payload, self.signature)
        header, payload, sig = good.split(".")

        with pytest.raises(MalformedTokenError):
            token_codec.decode(f"{header}.{payload}.a$b")
        with pytest.raises(MalformedTokenError):
            token_codec.decode(f"abcde.{payload}.{sig}")  # impossible length

    def test_rejects_non_json_segments(self):
        sig = token_codec.b64url_encode(self.signature)
        not_json = token_codec.b64url_encode(b"not json")
        array = token_codec.b64url_encode(b"[1,2]")
        good_header = token_codec.b64url_encode(canonicalize(self.header))

        with pytest.raises(MalformedTokenError):
            token_codec.decode(f"{not_json}.{good_header}.{sig}")
        with pytest.raises(MalformedTokenError):
            token_codec.decode(f"{good_header}.{array}.{sig}")

    def test_rejects_non_string(self):
        with pytest.raises(MalformedTokenError):
            token_codec.decode(None)

    def test_b64url_helpers(self):
        assert token_codec.b64url_encode(b"\xfb\xff") == "-_8"
        assert token_codec.b64url_decode("-_8") == b"\xfb\xff"
        with pytest.raises(EncodingError):
            token_codec.b64url_decode("abc=")
        with pytest.raises(EncodingError):
            token_codec.b64url_decode("-_8\n")

    def test_rejects_newline_inside_segment(self):
        header, payload, sig = token_codec.encode(self.header, self.payload, self.signature).split(".")

        with pytest.raises(MalformedTokenError):
            token_codec.decode(f"{header}\n.{payload}.{sig}")
        with pytest.raises(MalformedTokenError):
            token_codec.decode(f"{header}.{payload}\n.{sig}")


class TestKeyManager:
    """Test issuer keys and secp256k1 signatures"""

    def setup_method(self):
        self.key = load_issuer_key(TEST_PRIVATE_KEY)

    def test_load_known_key(self):
        assert self.key.address == TEST_ADDRESS
        assert self.key.did == f"did:ethr:{TEST_ADDRESS}"
        assert self.key.method == "ethr"
        print(f"✅ Issuer DID: {self.key.did}")

    def test_did_is_deterministic(self):
        again = load_issuer_key(TEST_PRIVATE_KEY)
        without_prefix = load_issuer_key(TEST_PRIVATE_KEY[2:])
        from_bytes = load_issuer_key(bytes.fromhex(TEST_PRIVATE_KEY[2:]))

        assert again.did == self.key.did
        assert without_prefix.did == self.key.did
        assert from_bytes.did == self.key.did
        assert load_issuer_key(TEST_PRIVATE_KEY, method="example").did == f"did:example:{TEST_ADDRESS}"

    def test_private_key_not_in_repr(self):
        assert TEST_PRIVATE_KEY[2:] not in repr(self.key)

    @pytest.mark.parametrize("bad_key", [
        None,
        "",
        "0x" + "00" * 32,
        "0xnothex",
        "0x1234",
        "ff" * 33,
        "ff" * 32,  # above the curve order
        12345,
    ])
    def test_invalid_keys(self, bad_key):
        with pytest.raises(InvalidKeyError) as exc_info:
            load_issuer_key(bad_key)
        assert exc_info.value.kind == "KeyError"

    def test_sign_and_recover(self):
        for message in (b"", b"hello", b'{"a":1}', bytes(range(256))):
            signature = sign(message, self.key)
            assert recover_address(signature, message) == self.key.address

    def test_sign_and_recover_generated_keys(self):
        for _ in range(3):
            key = generate_issuer_key()
            signature = sign(b"payload", key)

            assert recover_address(signature, b"payload") == key.address
            assert key.did == did_from_address(key.address)

    def test_signing_is_deterministic(self):
        assert sign(b"same bytes", self.key) == sign(b"same bytes", self.key)

    def test_signature_bytes(self):
        signature = sign(b"payload", self.key)
        raw = signature.to_bytes()

        assert len(raw) == 65
        assert raw[64] in (0, 1)
        assert Signature.from_bytes(raw) == signature

        ethereum_v = raw[:64] + bytes([raw[64] + 27])
        assert Signature.from_bytes(ethereum_v) == signature

        with pytest.raises(EncodingError):
            Signature.from_bytes(raw[:63])
        with pytest.raises(EncodingError):
            Signature.from_bytes(raw[:64] + b"\x05")

    def test_candidate_addresses_for_rs_only(self):
        signature = sign(b"payload", self.key)

        assert candidate_addresses(signature.to_bytes(), b"payload") == [self.key.address]
        assert self.key.address in candidate_addresses(signature.rs_bytes(), b"payload")

    def test_wrong_message_recovers_other_address(self):
        signature = sign(b"payload", self.key)

        assert recover_address(signature, b"other payload") != self.key.address

    def test_personal_sign_round_trip(self):
        signature = sign_message(b'{"id":"vc-1"}', self.key)

        assert signature.startswith("0x")
        assert len(bytes.fromhex(signature[2:])) == 65
        assert recover_message_signer(b'{"id":"vc-1"}', signature) == self.key.address
        assert recover_message_signer(b'{"id":"vc-1"}', signature[2:]) == self.key.address

    def test_personal_sign_bad_hex(self):
        with pytest.raises(EncodingError):
            recover_message_signer(b"msg", "0xnot-hex")
        with pytest.raises(EncodingError):
            recover_message_signer(b"msg", "0x" + "ab" * 10)
