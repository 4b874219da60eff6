from __future__ import annotations

import pytest

from page_digest.__main__ import main
from page_digest.config import DEFAULT_MIN_LENGTH, Config, load_config, parse_min_lengths
from page_digest.state import WorkflowStore


def test_parse_min_lengths_overrides_defaults():
    lengths = parse_min_lengths("readability=800, headless=50")

    assert lengths["readability"] == 800
    assert lengths["headless"] == 50
    assert lengths["basic-parser"] == 150


def test_parse_min_lengths_rejects_garbage():
    with pytest.raises(ValueError):
        parse_min_lengths("readability")
    with pytest.raises(ValueError):
        parse_min_lengths("readability=lots")


def test_min_length_for_unknown_strategy():
    assert Config().min_length_for("something-new") == DEFAULT_MIN_LENGTH


def test_load_config_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PAGE_DIGEST_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CF_ACCOUNT_ID", "acct")
    monkeypatch.setenv("CF_API_TOKEN", "tok")
    monkeypatch.setenv("LLM_API_KEY", "gem")
    monkeypatch.setenv("PAGE_DIGEST_LLM_TIMEOUT", "12.5")
    monkeypatch.setenv("PAGE_DIGEST_POLL_INTERVAL", "60")

    config = load_config()

    assert config.store_file == tmp_path / "data" / "workflows.json"
    assert (tmp_path / "data").is_dir()
    assert config.rendering_enabled is True
    assert config.gemini_api_key == "gem"
    assert config.llm_timeout == 12.5
    assert config.poll_interval == 60


def test_load_config_rejects_bad_numbers(monkeypatch, tmp_path):
    monkeypatch.setenv("PAGE_DIGEST_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PAGE_DIGEST_FETCH_TIMEOUT", "soon")

    with pytest.raises(ValueError, match="PAGE_DIGEST_FETCH_TIMEOUT"):
        load_config()


def test_load_config_rejects_bad_email_port(monkeypatch, tmp_path):
    monkeypatch.setenv("PAGE_DIGEST_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("EMAIL_PORT", "smtp")

    with pytest.raises(ValueError, match="EMAIL_PORT must be an integer"):
        load_config()


def test_cli_add_list_and_validation(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("PAGE_DIGEST_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("PAGE_DIGEST_STORE_FILE", raising=False)

    code = main(
        [
            "add",
            "--user-id", "u1",
            "--url", "https://example.com",
            "--prompt", "Summarize",
            "--frequency", "daily",
            "--notify-type", "in-app",
        ]
    )
    workflow_id = capsys.readouterr().out.strip()

    assert code == 0
    assert WorkflowStore(tmp_path / "workflows.json").get_workflow(workflow_id) is not None

    assert main(["list", "--user-id", "u1"]) == 0
    assert workflow_id in capsys.readouterr().out

    bad = main(
        [
            "add",
            "--user-id", "u1",
            "--url", "https://example.com",
            "--prompt", "Summarize",
            "--frequency", "daily",
            "--notify-type", "email",
        ]
    )
    assert bad == 1


def test_cli_seen_unknown_result(monkeypatch, tmp_path):
    monkeypatch.setenv("PAGE_DIGEST_DATA_DIR", str(tmp_path))

    assert main(["seen", "missing"]) == 1
