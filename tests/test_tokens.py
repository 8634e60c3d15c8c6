import pytest
from jose import jwt

from errors import InvalidToken
from tokens import ACCESS, REFRESH, TokenService


def test_access_token_carries_identity_and_scope(tokens, clock):
    token = tokens.issue({"sub": 7, "role": "hospital_admin", "hospital_id": 3})
    claims = tokens.verify(token)

    assert claims.user_id == 7
    assert claims.role == "hospital_admin"
    assert claims.type == ACCESS
    assert claims.hospital_id == 3
    assert claims.pharmacy_id is None and claims.region is None
    assert claims.issued_at == int(clock.now.timestamp())
    assert claims.expires_at - claims.issued_at == 3600


def test_refresh_token_lives_seven_days(tokens):
    claims = tokens.verify(tokens.issue({"sub": 1, "role": "patient"}, REFRESH))
    assert claims.type == REFRESH
    assert claims.expires_at - claims.issued_at == 7 * 24 * 3600


def test_token_expires_exactly_at_exp(tokens, clock):
    token = tokens.issue({"sub": 1, "role": "patient"})

    clock.advance(minutes=59, seconds=59)
    assert tokens.verify(token).user_id == 1

    clock.advance(seconds=1)
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_refresh_token_outlives_access_token(tokens, clock):
    access, refresh = tokens.issue_pair({"sub": 1, "role": "patient"})
    clock.advance(days=1)

    with pytest.raises(InvalidToken):
        tokens.verify(access)
    assert tokens.verify(refresh).type == REFRESH


def test_token_signed_with_another_secret_is_rejected(tokens, clock):
    foreign = TokenService("someone-elses-secret", clock=clock)
    with pytest.raises(InvalidToken):
        tokens.verify(foreign.issue({"sub": 1, "role": "patient"}))


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_garbage_is_rejected(tokens, token):
    with pytest.raises(InvalidToken):
        tokens.verify(token)


@pytest.mark.parametrize(
    "payload",
    [
        {"role": "patient", "type": "access"},
        {"sub": "1", "type": "access"},
        {"sub": "one", "role": "patient", "type": "access"},
        {"sub": "1", "role": "patient", "type": "session"},
        {"sub": "1", "role": "patient"},
    ],
)
def test_malformed_payload_is_rejected(tokens, clock, payload):
    now = int(clock.now.timestamp())
    token = jwt.encode(dict(payload, iat=now, exp=now + 60), tokens.secret_key, algorithm="HS256")
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_verifying_twice_gives_identical_claims(tokens):
    token = tokens.issue({"sub": 4, "role": "region_admin", "region": "oromia"})
    assert tokens.verify(token) == tokens.verify(token)


def test_issue_requires_subject_and_role(tokens):
    with pytest.raises(ValueError):
        tokens.issue({"role": "patient"})
    with pytest.raises(ValueError):
        tokens.issue({"sub": 1})
    with pytest.raises(ValueError):
        tokens.issue({"sub": 1, "role": "patient"}, "session")


def test_secret_is_required():
    with pytest.raises(ValueError):
        TokenService("")
