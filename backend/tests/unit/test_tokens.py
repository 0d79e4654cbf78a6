"""Unit tests for signed token issuance and verification."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest

from tokengate.core.config import Settings
from tokengate.services.errors import (
    InvalidAccessTokenError,
    InvalidKeyError,
    InvalidTokenTypeError,
    MalformedClaimError,
    MissingClaimError,
    TokenDecodeError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from tokengate.services.tokens import (
    ALGORITHM,
    TOKEN_TYPE_HEADER,
    SigningKeyPair,
    TokenCodec,
    TokenPayload,
    TokenType,
    issue_token,
    load_public_key,
    utcnow,
    verify_token,
)

SEED_HEX = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"


def _payload(token_type: TokenType = TokenType.ACCESS, lifetime=timedelta(hours=1), now=None):
    return TokenPayload.new(uuid.uuid4(), uuid.uuid4(), token_type, lifetime, now=now)


def _raw_token(keys: SigningKeyPair, claims: dict, token_type: str | None = "access_token") -> str:
    """Sign an arbitrary claim set, bypassing TokenPayload."""
    headers = {TOKEN_TYPE_HEADER: token_type} if token_type is not None else None
    return jwt.encode(claims, keys.private_key, algorithm=ALGORITHM, headers=headers)


def _valid_claims() -> dict:
    now = int(utcnow().timestamp())
    return {
        "jti": str(uuid.uuid4()),
        "sub": str(uuid.uuid4()),
        "aud": str(uuid.uuid4()),
        "iat": now,
        "nbf": now,
        "exp": now + 3600,
    }


class TestTokenPayload:
    def test_new_sets_time_window(self):
        now = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=UTC)

        payload = _payload(lifetime=timedelta(minutes=15), now=now)

        assert payload.issued_at == now.replace(microsecond=0)
        assert payload.not_before == payload.issued_at
        assert payload.expires_at == payload.issued_at + timedelta(minutes=15)

    def test_new_generates_unique_ids(self):
        assert _payload().jti != _payload().jti


class TestRoundTrip:
    """Tests for issue_token / verify_token."""

    def test_verify_returns_issued_payload(self, signing_keys):
        payload = _payload()
        token = issue_token(payload, signing_keys.private_key)

        decoded = verify_token(token, signing_keys.public_key)

        assert decoded == payload

    def test_token_type_in_protected_header(self, signing_keys):
        token = issue_token(_payload(TokenType.REFRESH), signing_keys.private_key)

        header = jwt.get_unverified_header(token)

        assert header[TOKEN_TYPE_HEADER] == "refresh_token"
        assert header["alg"] == "EdDSA"

    def test_expected_type_match(self, signing_keys):
        token = issue_token(_payload(TokenType.REFRESH), signing_keys.private_key)

        decoded = verify_token(token, signing_keys.public_key, TokenType.REFRESH)

        assert decoded.token_type is TokenType.REFRESH

    def test_expected_type_mismatch(self, signing_keys):
        token = issue_token(_payload(TokenType.REFRESH), signing_keys.private_key)

        with pytest.raises(InvalidTokenTypeError):
            verify_token(token, signing_keys.public_key, TokenType.ACCESS)

    def test_verify_with_exported_public_key(self, signing_keys):
        payload = _payload()
        token = issue_token(payload, signing_keys.private_key)
        public_key = load_public_key(signing_keys.public_key_hex)

        assert verify_token(token, public_key) == payload


class TestRejection:
    """Tokens that must fail verification."""

    def test_other_key_rejected(self, signing_keys):
        token = issue_token(_payload(), SigningKeyPair.generate().private_key)

        with pytest.raises(TokenDecodeError):
            verify_token(token, signing_keys.public_key)

    def test_tampered_payload_rejected(self, signing_keys):
        token = issue_token(_payload(), signing_keys.private_key)
        header, body, signature = token.split(".")
        other = issue_token(_payload(), signing_keys.private_key).split(".")[1]

        with pytest.raises(TokenDecodeError):
            verify_token(f"{header}.{other}.{signature}", signing_keys.public_key)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "a.b"])
    def test_garbage_rejected(self, signing_keys, token):
        with pytest.raises(TokenDecodeError):
            verify_token(token, signing_keys.public_key)

    def test_hmac_token_rejected(self, signing_keys):
        token = jwt.encode(_valid_claims(), "x" * 32, algorithm="HS256")

        with pytest.raises(TokenDecodeError):
            verify_token(token, signing_keys.public_key)

    def test_expired(self, signing_keys):
        issued = utcnow() - timedelta(days=2)
        token = issue_token(_payload(now=issued), signing_keys.private_key)

        with pytest.raises(TokenExpiredError):
            verify_token(token, signing_keys.public_key)

    def test_expired_against_caller_clock(self, signing_keys):
        """Expiry is also checked against the supplied time, not only the parser's."""
        token = issue_token(_payload(lifetime=timedelta(minutes=5)), signing_keys.private_key)

        with pytest.raises(TokenExpiredError):
            verify_token(token, signing_keys.public_key, now=utcnow() + timedelta(minutes=10))

    def test_not_yet_valid(self, signing_keys):
        issued = utcnow() + timedelta(hours=1)
        token = issue_token(_payload(now=issued), signing_keys.private_key)

        with pytest.raises(TokenNotYetValidError):
            verify_token(token, signing_keys.public_key)

    def test_failures_share_base_class(self, signing_keys):
        issued = utcnow() - timedelta(days=2)
        token = issue_token(_payload(now=issued), signing_keys.private_key)

        with pytest.raises(InvalidAccessTokenError):
            verify_token(token, signing_keys.public_key)

    @pytest.mark.parametrize("claim", ["jti", "sub", "aud", "iat", "nbf", "exp"])
    def test_missing_claim(self, signing_keys, claim):
        claims = _valid_claims()
        del claims[claim]

        with pytest.raises(MissingClaimError) as exc_info:
            verify_token(_raw_token(signing_keys, claims), signing_keys.public_key)

        assert exc_info.value.claim == claim

    @pytest.mark.parametrize("claim", ["jti", "sub", "aud"])
    def test_non_uuid_claim(self, signing_keys, claim):
        claims = _valid_claims()
        claims[claim] = "not-a-uuid"

        with pytest.raises(MalformedClaimError) as exc_info:
            verify_token(_raw_token(signing_keys, claims), signing_keys.public_key)

        assert exc_info.value.claim == claim

    def test_missing_token_type(self, signing_keys):
        token = _raw_token(signing_keys, _valid_claims(), token_type=None)

        with pytest.raises(MissingClaimError) as exc_info:
            verify_token(token, signing_keys.public_key)

        assert exc_info.value.claim == TOKEN_TYPE_HEADER

    def test_unknown_token_type(self, signing_keys):
        token = _raw_token(signing_keys, _valid_claims(), token_type="id_token")

        with pytest.raises(MalformedClaimError):
            verify_token(token, signing_keys.public_key)


class TestSigningKeyPair:
    def test_from_hex_is_deterministic(self):
        first = SigningKeyPair.from_hex(SEED_HEX)
        second = SigningKeyPair.from_hex(SEED_HEX)

        assert first.public_key_hex == second.public_key_hex
        assert len(first.public_key_hex) == 64

    def test_tokens_survive_reload(self):
        payload = _payload()
        token = issue_token(payload, SigningKeyPair.from_hex(SEED_HEX).private_key)

        assert verify_token(token, SigningKeyPair.from_hex(SEED_HEX).public_key) == payload

    @pytest.mark.parametrize("seed", ["abc", "zz" * 32, SEED_HEX + "00"])
    def test_from_hex_invalid(self, seed):
        with pytest.raises(InvalidKeyError):
            SigningKeyPair.from_hex(seed)

    def test_from_settings_with_key(self):
        keys = SigningKeyPair.from_settings(Settings(token_signing_key=SEED_HEX))

        assert keys.public_key_hex == SigningKeyPair.from_hex(SEED_HEX).public_key_hex

    def test_from_settings_without_key_generates(self):
        first = SigningKeyPair.from_settings(Settings(token_signing_key=None))
        second = SigningKeyPair.from_settings(Settings(token_signing_key=None))

        assert first.public_key_hex != second.public_key_hex

    def test_load_public_key_invalid(self):
        with pytest.raises(InvalidKeyError):
            load_public_key("00" * 5)


class TestTokenCodec:
    def test_issue_and_verify(self, codec):
        payload = codec.new_payload(
            uuid.uuid4(), uuid.uuid4(), TokenType.ACCESS, timedelta(hours=1)
        )

        assert codec.verify(codec.issue(payload), TokenType.ACCESS) == payload

    def test_clock_drives_expiry(self, signing_keys):
        current = [utcnow()]
        codec = TokenCodec(signing_keys, clock=lambda: current[0])
        payload = codec.new_payload(
            uuid.uuid4(), uuid.uuid4(), TokenType.ACCESS, timedelta(minutes=5)
        )
        token = codec.issue(payload)

        current[0] += timedelta(minutes=6)

        with pytest.raises(TokenExpiredError):
            codec.verify(token)
