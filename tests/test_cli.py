import json

import pytest
import yaml

from web_harvester.cli import build_parser, main


def test_parser_commands():
    parser = build_parser()

    args = parser.parse_args(["extract", "a.yaml", "b.json", "-w", "3", "-o", "out.json"])
    assert args.rules == ["a.yaml", "b.json"]
    assert args.workers == 3
    assert args.output == "out.json"

    args = parser.parse_args(["-v", "config", "--validate", "c.yaml"])
    assert args.verbose is True
    assert args.validate == "c.yaml"


def test_config_create_and_validate(tmp_path, capsys):
    path = tmp_path / "config" / "default.yaml"

    main(["config", "--create-default", "-o", str(path)])
    assert path.exists()
    assert "✓" in capsys.readouterr().out

    main(["config", "--validate", str(path)])
    assert "Configuration is valid" in capsys.readouterr().out


def test_config_validate_rejects_bad_file(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"extraction": {"html_parser": "nope"}}))

    with pytest.raises(SystemExit) as exc_info:
        main(["config", "--validate", str(path)])

    assert exc_info.value.code == 1
    assert "✗" in capsys.readouterr().out


def test_extract_writes_outputs(tmp_path, http_server):
    rules_path = tmp_path / "rules.yaml"
    rules_path.write_text(yaml.safe_dump({
        "URL": f"{http_server}/page",
        "Selectors": {"title": "//title", "link": "//a/@href"},
    }))
    out_path = tmp_path / "out.json"

    main(["extract", str(rules_path), "-o", str(out_path), "--ignore-robots"])

    entries = json.loads(out_path.read_text())
    assert len(entries) == 1
    assert entries[0]["source"] == str(rules_path)
    assert entries[0]["output"]["data"] == {"title": "Local page", "link": "/redirect/0"}
    assert "errors" not in entries[0]


def test_extract_reports_failures(tmp_path, http_server, capsys):
    rules_path = tmp_path / "rules.json"
    rules_path.write_text(json.dumps([
        {"URL": f"{http_server}/page", "Selectors": {"title": "//title"}},
        {"URL": f"{http_server}/private", "Selectors": {"title": "//title"}},
        {"URL": 42},
    ]))

    with pytest.raises(SystemExit) as exc_info:
        main(["extract", str(rules_path), "-w", "2"])
    assert exc_info.value.code == 1

    entries = {entry["source"]: entry for entry in json.loads(capsys.readouterr().out)}
    assert entries[f"{rules_path}[0]"]["output"]["data"] == {"title": "Local page"}
    assert "robots.txt" in entries[f"{rules_path}[1]"]["error"]
    assert "URL" in entries[f"{rules_path}[2]"]["error"]
