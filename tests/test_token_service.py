"""Token service tests — issuance, liveness, rotation, revocation.

Learn: these run against the service directly, one session per
"request". The rotation race tests are the important ones: two
sessions rotate the same token at the same time, or a second rotation
lands between the signature check and the claim, and exactly one of
them may win.
"""

import asyncio
import time

import jwt
import pytest
from sqlalchemy import select

from tokenvault.auth.jwt import create_token, verify_token
from tokenvault.config import settings
from tokenvault.db.models import Token
from tokenvault.errors import AuthenticationError, ConfigurationError, NotFoundError
from tokenvault.services.token_service import AuthResult, TokenService, preview
from tokenvault.services.token_store import TokenStore


async def _new_account(session_factory, email="ann@example.com") -> str:
    """Sign up in its own session and return the first token."""
    async with session_factory() as session:
        result = await TokenService(session).signup(email, "secret123", "Ann")
        return result.token


# ═══════════════════════════════════════════════════════════
# Signing
# ═══════════════════════════════════════════════════════════


def test_payload_has_no_expiry():
    token = create_token("ann@example.com")
    payload = jwt.decode(token, options={"verify_signature": False})
    assert set(payload) == {"email", "iat"}
    assert "exp" not in payload


def test_tokens_for_same_email_differ():
    assert create_token("ann@example.com") != create_token("ann@example.com")


def test_verify_rejects_wrong_secret():
    forged = jwt.encode({"email": "ann@example.com", "iat": time.time()}, "x" * 40)
    with pytest.raises(AuthenticationError):
        verify_token(forged)


def test_verify_rejects_payload_without_email():
    token = jwt.encode({"iat": time.time()}, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        verify_token(token)


def test_missing_secret_is_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "jwt_secret", "")
    with pytest.raises(ConfigurationError):
        create_token("ann@example.com")
    with pytest.raises(ConfigurationError):
        verify_token("anything")


def test_preview_truncates():
    assert preview("a" * 100) == "a" * 20 + "..."


# ═══════════════════════════════════════════════════════════
# Signup / login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_signup_persists_active_token(db_session):
    svc = TokenService(db_session)
    result = await svc.signup("ann@example.com", "secret123", "Ann")

    assert isinstance(result, AuthResult)
    assert result.user.email == "ann@example.com"
    assert svc.verify_signature(result.token) == "ann@example.com"

    row = await TokenStore(db_session).get(result.token)
    assert row.is_active is True
    assert row.user_id == result.user.id
    assert row.description == "Signup Token"


@pytest.mark.asyncio
async def test_login_failures_are_identical(db_session):
    svc = TokenService(db_session)
    await svc.signup("ann@example.com", "secret123", "Ann")

    with pytest.raises(AuthenticationError) as wrong_pw:
        await svc.login("ann@example.com", "nope")
    with pytest.raises(AuthenticationError) as unknown:
        await svc.login("bob@example.com", "nope")
    assert wrong_pw.value.message == unknown.value.message == "Invalid credentials"


# ═══════════════════════════════════════════════════════════
# Liveness
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_old_token_without_expiry_still_accepted(db_session):
    """A token issued years ago is live for as long as its row is."""
    svc = TokenService(db_session)
    result = await svc.signup("ann@example.com", "secret123", "Ann")

    ten_years_ago = time.time() - 10 * 365 * 24 * 3600
    old = jwt.encode(
        {"email": "ann@example.com", "iat": ten_years_ago},
        settings.jwt_secret,
        algorithm="HS256",
    )
    await TokenStore(db_session).add(old, result.user.id, "ann@example.com", "API Token")
    await db_session.commit()

    assert svc.verify_signature(old) == "ann@example.com"
    assert await svc.is_active(old) is True


@pytest.mark.asyncio
async def test_valid_signature_without_row_is_not_active(db_session):
    svc = TokenService(db_session)
    await svc.signup("ann@example.com", "secret123", "Ann")
    stray = create_token("ann@example.com")

    assert svc.verify_signature(stray) == "ann@example.com"
    assert await svc.authenticate(stray) is None


@pytest.mark.asyncio
async def test_authenticate_returns_owner(db_session):
    svc = TokenService(db_session)
    result = await svc.signup("ann@example.com", "secret123", "Ann")

    owner = await svc.authenticate(result.token)
    assert owner.user_id == result.user.id
    assert owner.email == "ann@example.com"


# ═══════════════════════════════════════════════════════════
# Revocation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_revoke_is_idempotent(db_session):
    svc = TokenService(db_session)
    token = (await svc.signup("ann@example.com", "secret123", "Ann")).token

    await svc.revoke(token)
    row = await TokenStore(db_session).get(token)
    await db_session.refresh(row)
    first_revoked_at = row.revoked_at
    assert row.is_active is False
    assert first_revoked_at is not None

    await svc.revoke(token)
    await db_session.refresh(row)
    assert row.revoked_at == first_revoked_at

    await svc.revoke("never-issued")
    assert await svc.is_active(token) is False


@pytest.mark.asyncio
async def test_revoke_all_leaves_other_users_alone(db_session):
    svc = TokenService(db_session)
    a1 = (await svc.signup("ann@example.com", "secret123", "Ann")).token
    a2 = (await svc.login("ann@example.com", "secret123")).token
    b1 = (await svc.signup("bob@example.com", "secret123", "Bob")).token

    assert await svc.revoke_all("ann@example.com") == 2
    assert await svc.is_active(a1) is False
    assert await svc.is_active(a2) is False
    assert await svc.is_active(b1) is True

    assert await svc.revoke_all("ann@example.com") == 0


@pytest.mark.asyncio
async def test_revoke_all_unknown_user(db_session):
    with pytest.raises(NotFoundError):
        await TokenService(db_session).revoke_all("ghost@example.com")


# ═══════════════════════════════════════════════════════════
# Rotation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_rotate_links_chain(db_session):
    svc = TokenService(db_session)
    a = (await svc.signup("ann@example.com", "secret123", "Ann")).token

    result = await svc.rotate(a)
    b = result.token
    assert b != a
    assert result.user.email == "ann@example.com"

    store = TokenStore(db_session)
    old, new = await store.get(a), await store.get(b)
    await db_session.refresh(old)
    assert old.is_active is False
    assert old.revoked_at is not None
    assert old.rotated_to == b
    assert new.rotated_from == a
    assert new.is_active is True
    assert new.description == "Rotated Token"

    assert await svc.is_active(a) is False
    assert await svc.is_active(b) is True


@pytest.mark.asyncio
async def test_rotate_keep_old(db_session):
    svc = TokenService(db_session)
    a = (await svc.signup("ann@example.com", "secret123", "Ann")).token

    b = (await svc.rotate(a, revoke_old=False)).token

    assert await svc.is_active(a) is True
    assert await svc.is_active(b) is True
    new = await TokenStore(db_session).get(b)
    assert new.rotated_from is None


@pytest.mark.asyncio
async def test_rotate_revoked_token_fails(db_session):
    svc = TokenService(db_session)
    a = (await svc.signup("ann@example.com", "secret123", "Ann")).token
    await svc.revoke(a)

    with pytest.raises(AuthenticationError):
        await svc.rotate(a)
    with pytest.raises(AuthenticationError):
        await svc.rotate(a, revoke_old=False)


@pytest.mark.asyncio
async def test_rotate_bad_signature(db_session):
    with pytest.raises(AuthenticationError):
        await TokenService(db_session).rotate("not.a.jwt")


@pytest.mark.asyncio
async def test_rotate_for_vanished_user_writes_nothing(db_session):
    """A live row for an email with no account: NotFoundError, claim undone."""
    svc = TokenService(db_session)
    owner = (await svc.signup("ann@example.com", "secret123", "Ann")).user
    ghost = create_token("ghost@example.com")
    await TokenStore(db_session).add(ghost, owner.id, "ghost@example.com", "API Token")
    await db_session.commit()

    with pytest.raises(NotFoundError):
        await svc.rotate(ghost)

    assert await svc.is_active(ghost) is True


@pytest.mark.asyncio
async def test_concurrent_rotation_has_one_winner(session_factory):
    """Two simultaneous rotations of one token: exactly one succeeds."""
    a = await _new_account(session_factory)

    async with session_factory() as s1, session_factory() as s2:
        outcomes = await asyncio.gather(
            TokenService(s1).rotate(a),
            TokenService(s2).rotate(a),
            return_exceptions=True,
        )

    winners = [o for o in outcomes if isinstance(o, AuthResult)]
    losers = [o for o in outcomes if isinstance(o, AuthenticationError)]
    assert len(winners) == 1
    assert len(losers) == 1

    async with session_factory() as session:
        svc = TokenService(session)
        tokens = await svc.list_active_tokens("ann@example.com")
        assert len(tokens) == 1
        old = await TokenStore(session).get(a)
        assert old.is_active is False
        assert old.rotated_to == winners[0].token


@pytest.mark.asyncio
async def test_rotation_loses_to_rotation_after_signature_check(session_factory):
    """Another request rotates the token between our signature check and
    our claim. Ours must fail and the chain must hold one new token."""
    a = await _new_account(session_factory)
    winners = []

    async with session_factory() as session:
        svc = TokenService(session)
        real_claim = svc.tokens.claim

        async def contested_claim(token):
            async with session_factory() as other:
                winners.append(await TokenService(other).rotate(token))
            return await real_claim(token)

        svc.tokens.claim = contested_claim
        with pytest.raises(AuthenticationError):
            await svc.rotate(a)

    assert len(winners) == 1
    async with session_factory() as session:
        rows = (
            await session.execute(select(Token).where(Token.email == "ann@example.com"))
        ).scalars().all()
        by_token = {row.token: row for row in rows}
        assert set(by_token) == {a, winners[0].token}
        assert by_token[a].is_active is False
        assert by_token[a].rotated_to == winners[0].token
        assert [row.description for row in rows if row.is_active] == ["Rotated Token"]


@pytest.mark.asyncio
async def test_revoking_rotation_checks_liveness_only_through_claim(db_session):
    """No read-then-write: the claim is the first token-store call and the
    only liveness check of a revoking rotation."""
    svc = TokenService(db_session)
    a = (await svc.signup("ann@example.com", "secret123", "Ann")).token

    calls = []

    def record(name, fn):
        async def wrapper(*args, **kwargs):
            calls.append(name)
            return await fn(*args, **kwargs)

        return wrapper

    for name in ("get", "find_active", "claim", "add", "set_rotated_to"):
        setattr(svc.tokens, name, record(name, getattr(svc.tokens, name)))

    await svc.rotate(a)

    assert calls[0] == "claim"
    assert calls.count("claim") == 1
    assert "find_active" not in calls
    assert "get" not in calls


# ═══════════════════════════════════════════════════════════
# Account views
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_active_tokens(db_session):
    svc = TokenService(db_session)
    a = (await svc.signup("ann@example.com", "secret123", "Ann")).token
    await svc.login("ann@example.com", "secret123")
    await svc.revoke(a)

    tokens = await svc.list_active_tokens("ann@example.com")
    assert len(tokens) == 1
    assert tokens[0].description == "Login Token"
    assert tokens[0].token.endswith("...")
    assert tokens[0].is_active is True


@pytest.mark.asyncio
async def test_update_profile(db_session):
    svc = TokenService(db_session)
    await svc.signup("ann@example.com", "secret123", "Ann")

    user = await svc.update_profile("ann@example.com", name="Annie")
    assert user.name == "Annie"
    await svc.login("ann@example.com", "secret123")

    await svc.update_profile("ann@example.com", password="changed1")
    with pytest.raises(AuthenticationError):
        await svc.login("ann@example.com", "secret123")
    await svc.login("ann@example.com", "changed1")


@pytest.mark.asyncio
async def test_get_user_unknown(db_session):
    with pytest.raises(NotFoundError):
        await TokenService(db_session).get_user("ghost@example.com")
