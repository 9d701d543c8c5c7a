import json

from atlassian_app_auth.cli import main
from atlassian_app_auth.credentials import CREDENTIALS_PATH_ENV

ISSUE_URL = "https://corp.atlassian.net/rest/api/2/issue/TEST-1?fields=summary"


def _write_creds(tmp_path) -> str:
    path = tmp_path / "creds.json"
    path.write_text(json.dumps({"key": "my-app", "secret": "s3cr3t"}), encoding="utf-8")
    return str(path)


def test_cli_canonical(capsys) -> None:
    exit_code = main(["canonical", "get", ISSUE_URL])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.strip() == "GET&/rest/api/2/issue/TEST-1&fields=summary"


def test_cli_qsh_json(capsys) -> None:
    exit_code = main(["qsh", "GET", ISSUE_URL, "--json"])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.err == ""
    payload = json.loads(captured.out.strip())
    assert payload["command"] == "qsh"
    assert payload["qsh"] == "0a149457fce0819619e23c586ee4f74244d6a3fe45710d3f9f15cc0beebae417"


def test_cli_token_then_verify(tmp_path, capsys) -> None:
    creds = _write_creds(tmp_path)

    exit_code = main(["token", "GET", ISSUE_URL, "--creds", creds, "--now", "1700000000", "--ttl", "60", "--json"])
    token_payload = json.loads(capsys.readouterr().out.strip())
    assert exit_code == 0
    assert token_payload["issuer"] == "my-app"
    assert token_payload["exp"] == 1700000060

    exit_code = main(
        ["verify", token_payload["token"], "GET", ISSUE_URL, "--creds", creds, "--now", "1700000030", "--json"]
    )
    verify_payload = json.loads(capsys.readouterr().out.strip())
    assert exit_code == 0
    assert verify_payload["valid"] is True
    assert verify_payload["claims"]["iss"] == "my-app"


def test_cli_verify_reports_failure_code(tmp_path, capsys) -> None:
    creds = _write_creds(tmp_path)
    main(["token", "GET", ISSUE_URL, "--creds", creds, "--now", "1700000000"])
    token = capsys.readouterr().out.strip()

    other_url = "https://corp.atlassian.net/rest/api/2/issue/TEST-1?fields=description"
    exit_code = main(["verify", token, "GET", other_url, "--creds", creds, "--now", "1700000001", "--json"])

    payload = json.loads(capsys.readouterr().out.strip())
    assert exit_code == 1
    assert payload == {"command": "verify", "code": "request_mismatch", "valid": False}


def test_cli_reads_credentials_path_from_env(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.setenv(CREDENTIALS_PATH_ENV, _write_creds(tmp_path))

    exit_code = main(["token", "GET", ISSUE_URL])

    assert exit_code == 0
    assert capsys.readouterr().out.count(".") == 2


def test_cli_missing_credentials_is_a_usage_error(capsys, monkeypatch) -> None:
    monkeypatch.delenv(CREDENTIALS_PATH_ENV, raising=False)

    exit_code = main(["token", "GET", ISSUE_URL])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "invalid_input" in captured.err


def test_cli_rejects_double_encoded_query(capsys) -> None:
    exit_code = main(["qsh", "GET", "https://corp.atlassian.net/search?q=a%2520b"])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "unsupported_query_encoding" in captured.err
