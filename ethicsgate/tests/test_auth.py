import pytest

from ethicsgate import config
from ethicsgate.auth import StaticIdentityProvider, TokenIdentityProvider
from ethicsgate.errors import AuthenticationError


def test_static_identity_uses_flag_then_env(store, world, monkeypatch):
    assert StaticIdentityProvider(store, world.r1.id).current_user().id == world.r1.id
    monkeypatch.setenv(config.ACTOR_ENV, world.admin.id)
    assert StaticIdentityProvider(store).current_user().id == world.admin.id
    monkeypatch.delenv(config.ACTOR_ENV)
    with pytest.raises(AuthenticationError):
        StaticIdentityProvider(store).current_user()
    with pytest.raises(AuthenticationError):
        StaticIdentityProvider(store, "ghost").current_user()


def test_token_file_and_env(store, world, tmp_path, monkeypatch):
    token_file = tmp_path / "api_tokens.txt"
    token_file.write_text(f"# token user\nfile-token {world.author.id}\n\nmalformed-line\n")
    monkeypatch.setenv(config.API_TOKEN_ENV, f"env-token {world.admin.id}")
    provider = TokenIdentityProvider(store, token_file=token_file)

    assert provider.current_user("file-token").id == world.author.id
    assert provider.current_user(" env-token ").id == world.admin.id
    assert "malformed-line" not in provider.load_tokens()
    with pytest.raises(AuthenticationError):
        provider.current_user(None)
    with pytest.raises(AuthenticationError):
        provider.current_user("unknown")
