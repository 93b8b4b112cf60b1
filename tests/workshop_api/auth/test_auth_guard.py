from datetime import datetime, timedelta, timezone

import jwt
import pytest

from workshop_api.auth import jwt_handler
from workshop_api.auth.dependencies import (
    Principal,
    extract_token,
    get_current_principal,
    get_optional_principal,
    require_role,
)
from workshop_api.auth.passwords import hash_password, verify_password
from workshop_api.core import config
from workshop_api.core.errors import Forbidden, InvalidCredential, Unauthenticated


@pytest.mark.parametrize(
    ('header', 'expected'),
    [
        (None, None),
        ('', None),
        ('   ', None),
        ('Bearer ', None),
        ('Bearer abc.def.ghi', 'abc.def.ghi'),
        ('bearer abc.def.ghi', 'abc.def.ghi'),
        ('abc.def.ghi', 'abc.def.ghi'),
    ],
)
def test_extract_token_accepts_bearer_and_bare_values(header, expected) -> None:
    assert extract_token(header) == expected


def test_missing_credential_is_unauthenticated() -> None:
    with pytest.raises(Unauthenticated):
        get_current_principal(authorization=None)


def test_valid_credential_yields_principal_with_claims() -> None:
    token = jwt_handler.create_access_token(user_id=7, role='mentor')

    principal = get_current_principal(authorization=f'Bearer {token}')

    assert principal == Principal(user_id=7, role='mentor')
    assert principal.claims['sub'] == '7'
    assert 'exp' in principal.claims


def test_bare_token_without_scheme_is_accepted() -> None:
    token = jwt_handler.create_access_token(user_id=3, role='learner')

    principal = get_current_principal(authorization=token)

    assert principal.user_id == 3
    assert principal.role == 'learner'


@pytest.mark.parametrize('token', ['not-a-jwt', 'a.b.c', 'Bearer a.b'])
def test_malformed_credential_is_invalid(token: str) -> None:
    with pytest.raises(InvalidCredential):
        get_current_principal(authorization=token)


def test_expired_credential_is_invalid() -> None:
    token = jwt_handler.create_access_token(user_id=1, role='mentor', expires_minutes=-5)

    with pytest.raises(InvalidCredential):
        get_current_principal(authorization=token)


def test_credential_signed_with_another_secret_is_invalid() -> None:
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {'sub': '1', 'role': 'mentor', 'exp': now + timedelta(minutes=5)},
        'some-other-secret',
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(InvalidCredential):
        get_current_principal(authorization=token)


def test_credential_without_role_claim_is_invalid() -> None:
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {'sub': '1', 'exp': now + timedelta(minutes=5)},
        config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(InvalidCredential):
        get_current_principal(authorization=token)


def test_optional_principal_treats_missing_or_bad_tokens_as_anonymous() -> None:
    expired = jwt_handler.create_access_token(user_id=1, role='mentor', expires_minutes=-5)

    assert get_optional_principal(authorization=None) is None
    assert get_optional_principal(authorization='garbage') is None
    assert get_optional_principal(authorization=f'Bearer {expired}') is None


def test_optional_principal_returns_caller_for_valid_token() -> None:
    token = jwt_handler.create_access_token(user_id=7, role='learner')

    assert get_optional_principal(authorization=token) == Principal(user_id=7, role='learner')


def test_require_role_passes_matching_role() -> None:
    principal = Principal(user_id=1, role='mentor')

    assert require_role('mentor')(principal=principal) is principal


def test_require_role_is_plain_equality() -> None:
    check = require_role('mentor')

    for role in ('learner', 'Mentor', 'mentor ', 'admin'):
        with pytest.raises(Forbidden):
            check(principal=Principal(user_id=1, role=role))


def test_oauth_state_round_trips_user_id() -> None:
    state = jwt_handler.create_oauth_state(42)

    assert jwt_handler.decode_oauth_state(state) == 42


def test_access_token_is_not_accepted_as_oauth_state() -> None:
    token = jwt_handler.create_access_token(user_id=42, role='mentor')

    with pytest.raises(jwt.InvalidTokenError):
        jwt_handler.decode_oauth_state(token)


def test_password_hash_is_salted_and_verifiable() -> None:
    first = hash_password('correct-horse')
    second = hash_password('correct-horse')

    assert first != second
    assert 'correct-horse' not in first
    assert verify_password('correct-horse', first)
    assert verify_password('correct-horse', second)
    assert not verify_password('wrong-horse', first)


@pytest.mark.parametrize('stored', ['', 'plaintext', 'md5$1$aa$bb'])
def test_verify_password_rejects_unrecognised_hashes(stored: str) -> None:
    assert not verify_password('anything', stored)
