"""Credential store tests: upsert merge, resolution policy, encryption at rest."""

import json

import pytest

from weephub.core.credentials import ENV_SOURCE_ID, CredentialStore, mask_token
from weephub.core.errors import NoCredentialAvailable, NotFoundError, ValidationError
from weephub.core.models import SourceUpsert
from weephub.core.vault import SecretVault, generate_key


def stored_entries(tmp_path):
    return json.loads((tmp_path / "sources.json").read_text())["smartthings"]["entries"]


def test_create_requires_token(credentials):
    with pytest.raises(ValidationError):
        credentials.upsert(SourceUpsert(label="No token"))
    with pytest.raises(ValidationError):
        credentials.upsert(SourceUpsert(label="Blank", token="   "))


def test_create_defaults_label_and_enabled(credentials):
    source_id = credentials.upsert(SourceUpsert(token="abc-123"))
    entry = credentials.get_entry(source_id)

    assert entry.label == "SmartThings"
    assert entry.enabled is True


def test_upsert_merges_into_existing_entry(tmp_path, credentials, home_source):
    before = credentials.get_entry(home_source)

    returned = credentials.upsert(SourceUpsert(id=home_source, enabled=False))

    assert returned == home_source
    assert len(stored_entries(tmp_path)) == 1
    after = credentials.get_entry(home_source)
    assert after.enabled is False
    assert after.label == "Home"
    assert after.encrypted_token == before.encrypted_token
    assert after.updated_at > before.updated_at


def test_upsert_token_reencrypts(credentials, home_source):
    before = credentials.get_entry(home_source).encrypted_token

    credentials.upsert(SourceUpsert(id=home_source, token="rotated-token"))

    assert credentials.get_entry(home_source).encrypted_token != before
    assert credentials.resolve(home_source).token == "rotated-token"


def test_upsert_unknown_id_creates_new_entry(credentials):
    source_id = credentials.upsert(SourceUpsert(id="made-up", token="t-1"))
    assert source_id != "made-up"
    assert credentials.get_entry(source_id) is not None


def test_tokens_never_stored_in_plaintext(tmp_path, credentials):
    credentials.upsert(SourceUpsert(label="Office", token="super-secret-token"))

    raw = (tmp_path / "sources.json").read_text()
    assert "super-secret-token" not in raw
    assert "encryptedToken" in raw


def test_list_entries_masks_tokens(credentials, home_source):
    views = credentials.list_entries()

    assert len(views) == 1
    assert views[0].id == home_source
    assert views[0].token_hint == mask_token("home-token") == "****oken"
    assert "token" not in views[0].model_dump(by_alias=True)


# ─── Resolution policy ─────────────────────────────────────────────────


def test_resolve_prefers_first_enabled_source(credentials):
    a = credentials.upsert(SourceUpsert(label="A", token="token-a", enabled=False))
    b = credentials.upsert(SourceUpsert(label="B", token="token-b", enabled=True))

    assert credentials.resolve().id == b
    assert credentials.resolve().token == "token-b"


def test_explicit_source_used_even_when_disabled(credentials):
    a = credentials.upsert(SourceUpsert(label="A", token="token-a", enabled=False))
    credentials.upsert(SourceUpsert(label="B", token="token-b", enabled=True))

    source = credentials.resolve(a)
    assert source.id == a
    assert source.token == "token-a"


def test_explicit_unknown_source_rejected(credentials, home_source):
    with pytest.raises(NotFoundError):
        credentials.resolve("nope")


def test_env_fallback_when_no_enabled_source(tmp_path, vault):
    store = CredentialStore(tmp_path / "sources.json", vault, fallback_token="env-token")
    store.upsert(SourceUpsert(label="Off", token="t", enabled=False))

    source = store.resolve()
    assert source.id == ENV_SOURCE_ID
    assert source.token == "env-token"
    assert store.resolve(ENV_SOURCE_ID).token == "env-token"


def test_no_credential_available(credentials):
    with pytest.raises(NoCredentialAvailable):
        credentials.resolve()

    credentials.upsert(SourceUpsert(label="Off", token="t", enabled=False))
    with pytest.raises(NoCredentialAvailable):
        credentials.resolve()


# ─── Integrity ─────────────────────────────────────────────────────────


def test_tampered_entry_dropped_from_enabled_sources(tmp_path, vault):
    store = CredentialStore(tmp_path / "sources.json", vault)
    first = store.upsert(SourceUpsert(label="First", token="token-1"))
    second = store.upsert(SourceUpsert(label="Second", token="token-2"))

    payload = json.loads((tmp_path / "sources.json").read_text())
    blob = payload["smartthings"]["entries"][0]["encryptedToken"]
    payload["smartthings"]["entries"][0]["encryptedToken"] = ("A" if blob[0] != "A" else "B") + blob[1:]
    (tmp_path / "sources.json").write_text(json.dumps(payload))

    reloaded = CredentialStore(tmp_path / "sources.json", vault)
    assert [s.id for s in reloaded.list_enabled_sources()] == [second]
    assert reloaded.resolve().id == second
    with pytest.raises(NoCredentialAvailable):
        reloaded.resolve(first)

    hints = {v.id: v.token_hint for v in reloaded.list_entries()}
    assert hints[first] is None


def test_entries_unusable_under_another_key(tmp_path, credentials, home_source):
    other = CredentialStore(tmp_path / "sources.json", SecretVault(generate_key()))
    assert other.list_enabled_sources() == []


def test_entries_survive_reload(tmp_path, vault, credentials, home_source):
    reloaded = CredentialStore(tmp_path / "sources.json", vault)
    assert reloaded.resolve().token == "home-token"


def test_malformed_entry_skipped_on_load(tmp_path, vault, credentials, home_source):
    payload = json.loads((tmp_path / "sources.json").read_text())
    payload["smartthings"]["entries"].insert(0, {"id": "broken", "label": "No token"})
    payload["smartthings"]["entries"].append("garbage")
    (tmp_path / "sources.json").write_text(json.dumps(payload))

    reloaded = CredentialStore(tmp_path / "sources.json", vault)

    assert [v.id for v in reloaded.list_entries()] == [home_source]
    assert reloaded.resolve().token == "home-token"
