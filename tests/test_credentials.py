"""
test_credentials.py — CredentialService against the in-memory FakeDB.
"""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest
from app.core import security
from app.core.errors import Conflict, InvalidCredentials, InvalidOrExpiredToken, NotFound
from app.core.security import create_access_token
from app.services.credentials import CredentialService
from app.stores.accounts import AccountStore


@pytest.fixture()
async def service(fake_db, clock):
    store = AccountStore(fake_db)
    await store.ensure_indexes()
    return CredentialService(store, clock=clock)


class TestRegister:
    async def test_register_then_verify_returns_same_handle(self, service):
        token, account = await service.register("alice", "secret1", "a@x.com")
        verified = await service.verify(token)
        assert verified.username == "alice"
        assert verified.id == account.id

    async def test_password_is_stored_hashed(self, service, fake_db):
        await service.register("alice", "secret1", "a@x.com")
        doc = fake_db["users"].all()[0]
        assert doc["hashed_password"] != "secret1"
        assert doc["hashed_password"].startswith("$2")
        assert doc["last_login_at"] is None

    async def test_duplicate_handle_conflicts(self, service):
        await service.register("alice", "secret1", "a@x.com")
        with pytest.raises(Conflict):
            await service.register("alice", "other", "b@x.com")

    async def test_duplicate_contact_conflicts(self, service):
        await service.register("alice", "secret1", "a@x.com")
        with pytest.raises(Conflict):
            await service.register("bob", "other", "a@x.com")

    async def test_concurrent_duplicate_registration_yields_one_account(self, service, fake_db):
        results = await asyncio.gather(
            service.register("alice", "secret1", "a@x.com"),
            service.register("alice", "secret2", "a2@x.com"),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, Conflict)]
        assert len(conflicts) == 1
        assert len(fake_db["users"].all()) == 1


class TestAuthenticate:
    async def test_login_with_username(self, service):
        await service.register("alice", "secret1", "a@x.com")
        token, account = await service.authenticate("alice", "secret1")
        assert (await service.verify(token)).username == "alice"
        assert account.last_login_at is not None

    async def test_login_with_email(self, service):
        await service.register("alice", "secret1", "a@x.com")
        _, account = await service.authenticate("a@x.com", "secret1")
        assert account.username == "alice"

    async def test_login_updates_last_login(self, service, fake_db, clock):
        await service.register("alice", "secret1", "a@x.com")
        clock.advance(hours=3)
        await service.authenticate("alice", "secret1")
        assert fake_db["users"].all()[0]["last_login_at"] == clock.now

    async def test_wrong_secret_fails(self, service):
        await service.register("alice", "secret1", "a@x.com")
        with pytest.raises(InvalidCredentials):
            await service.authenticate("alice", "secret2")

    async def test_unknown_account_fails_after_dummy_check(self, service):
        with patch("app.services.credentials.burn_password_check") as burn:
            with pytest.raises(InvalidCredentials):
                await service.authenticate("nobody", "whatever")
        burn.assert_called_once_with("whatever")

    async def test_low_cost_hash_is_rotated_on_login(self, service, fake_db, monkeypatch):
        await service.register("alice", "secret1", "a@x.com")
        old_hash = fake_db["users"].all()[0]["hashed_password"]
        monkeypatch.setattr(security.settings, "bcrypt_rounds", security.settings.bcrypt_rounds + 1)

        await service.authenticate("alice", "secret1")

        new_hash = fake_db["users"].all()[0]["hashed_password"]
        assert new_hash != old_hash
        assert security.verify_password("secret1", new_hash)


class TestVerify:
    async def test_expired_token_rejected(self, service, clock):
        _, account = await service.register("alice", "secret1", "a@x.com")
        expired = create_access_token(
            account.id, "alice", expires_delta=timedelta(seconds=-1), now=clock()
        )
        with pytest.raises(InvalidOrExpiredToken):
            await service.verify(expired)

    async def test_issued_token_expires_on_the_injected_clock(self, service, clock):
        token, _ = await service.register("alice", "secret1", "a@x.com")
        clock.advance(days=6)
        assert (await service.verify(token)).username == "alice"
        clock.advance(days=2)
        with pytest.raises(InvalidOrExpiredToken):
            await service.verify(token)

    async def test_token_for_missing_account_rejected(self, service):
        token = create_access_token("65f000000000000000000000", "ghost")
        with pytest.raises(InvalidOrExpiredToken):
            await service.verify(token)

    async def test_token_with_non_objectid_subject_rejected(self, service):
        with pytest.raises(InvalidOrExpiredToken):
            await service.verify(create_access_token("not-an-object-id", "ghost"))

    async def test_garbage_rejected(self, service):
        with pytest.raises(InvalidOrExpiredToken):
            await service.verify("garbage.token.here")


class TestProfile:
    async def test_profile_has_no_secret_fields(self, service):
        _, account = await service.register("alice", "secret1", "a@x.com")
        view = await service.profile(account.id)
        dumped = view.model_dump()
        assert dumped["username"] == "alice"
        assert dumped["email"] == "a@x.com"
        assert "hashed_password" not in dumped

    async def test_profile_missing_account(self, service):
        with pytest.raises(NotFound):
            await service.profile("65f000000000000000000000")
