import json

from figma_bridge.cli import build_parser, main
from figma_bridge.config import settings


def test_validate_command(tmp_path, text_spec, capsys):
    path = tmp_path / "spec.json"
    path.write_text(json.dumps(text_spec), encoding="utf-8")

    assert main(["validate", str(path)]) == 0

    out = capsys.readouterr().out
    assert 'Valid DesignSpec "T" (100x50)' in out
    assert "Total nodes: 1" in out


def test_validate_command_rejects_invalid_spec(tmp_path, text_spec, capsys):
    text_spec["nodes"][0]["width"] = -5
    path = tmp_path / "spec.json"
    path.write_text(json.dumps(text_spec), encoding="utf-8")

    assert main(["validate", str(path)]) == 1
    assert "Invalid design spec" in capsys.readouterr().err


def test_validate_command_missing_file(tmp_path, capsys):
    assert main(["validate", str(tmp_path / "nope.json")]) == 1
    assert "Error:" in capsys.readouterr().err


def test_parser_defaults():
    parser = build_parser()
    serve = parser.parse_args(["serve", "spec.json"])
    assert serve.port == settings.WS_PORT

    export = parser.parse_args(["export", "--url", "http://localhost:3000", "--project", "."])
    assert (export.width, export.height) == (settings.VIEWPORT_WIDTH, settings.VIEWPORT_HEIGHT)

    build = parser.parse_args(["build"])
    assert build.url == f"ws://{settings.WS_HOST}:{settings.WS_PORT}/"
    assert build.output is None
