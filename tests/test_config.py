"""Tests for configuration loading."""

import os

import pytest

from stackweave.config import StackweaveConfig, load_config
from stackweave.core.types import Strategy, VcsMode


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and working directory."""
    for name in list(os.environ):
        if name.startswith("STACKWEAVE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = load_config()
    assert config == StackweaveConfig()
    assert config.vcs is VcsMode.SIMPLE
    assert config.requested_strategy is None
    assert config.max_retries == 2


def test_file_values(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("trunk: develop\nvcs_mode: stacked\nmax_retries: 1\ndraft: false\n")
    config = load_config(path)
    assert config.trunk == "develop"
    assert config.vcs is VcsMode.STACKED
    assert config.max_retries == 1
    assert config.draft is False


def test_default_file_in_working_directory(tmp_path):
    (tmp_path / ".stackweave.yaml").write_text("strategy: parallel\n")
    assert load_config().requested_strategy is Strategy.PARALLEL


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "c.yaml"
    path.write_text("max_retries: 1\ncontinue_on_error: false\n")
    monkeypatch.setenv("STACKWEAVE_MAX_RETRIES", "5")
    monkeypatch.setenv("STACKWEAVE_CONTINUE_ON_ERROR", "yes")
    config = load_config(path)
    assert config.max_retries == 5
    assert config.continue_on_error is True


def test_explicit_override_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("STACKWEAVE_TRUNK", "from-env")
    config = load_config(trunk="from-arg", strategy=None)
    assert config.trunk == "from-arg"


def test_config_path_from_env(tmp_path, monkeypatch):
    path = tmp_path / "elsewhere.yaml"
    path.write_text("branch_prefix: feature/\n")
    monkeypatch.setenv("STACKWEAVE_CONFIG", str(path))
    assert load_config().branch_prefix == "feature/"


def test_unknown_file_key_warns(tmp_path, caplog):
    path = tmp_path / "c.yaml"
    path.write_text("colour: blue\n")
    load_config(path)
    assert "colour" in caplog.text


def test_unknown_override_raises():
    with pytest.raises(ValueError, match="colour"):
        load_config(colour="blue")


def test_invalid_boolean(monkeypatch):
    monkeypatch.setenv("STACKWEAVE_DRAFT", "maybe")
    with pytest.raises(ValueError):
        load_config()


def test_invalid_vcs_mode():
    with pytest.raises(ValueError):
        load_config(vcs_mode="svn")


def test_non_mapping_file(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")
