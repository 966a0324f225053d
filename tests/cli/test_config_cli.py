"""TOG configuration and CLI tests."""

import json
import os

import pytest

from tog import __version__
from tog.cli import main
from tog.config import ConfigError, TogConfig, find_config, load_config


HELLO = """
fn greet(name) { "Hello, " + name }
fn main() { print(greet("World")) }
"""


@pytest.fixture
def program(tmp_path):
    def write(source, name="prog.tog"):
        path = tmp_path / name
        path.write_text(source)
        return str(path)
    return write


class TestConfig:

    def test_defaults_when_no_file(self, tmp_path):
        config = load_config(start_dir=str(tmp_path))
        assert config == TogConfig()
        assert config.max_call_depth == 400

    def test_yaml_file(self, tmp_path):
        (tmp_path / ".togrc.yml").write_text(
            "entry: start\nmax_call_depth: 64\nstrict_types: yes\nformat: JSON\n"
        )
        config = load_config(start_dir=str(tmp_path))
        assert config.entry == "start"
        assert config.max_call_depth == 64
        assert config.strict_types is True
        assert config.format == "json"

    def test_json_file(self, tmp_path):
        path = tmp_path / "tog.config.json"
        path.write_text(json.dumps({"log_level": "debug"}))
        assert load_config(str(path)).log_level == "DEBUG"

    def test_found_from_subdirectory(self, tmp_path):
        (tmp_path / ".togrc.yaml").write_text("entry: go\n")
        nested = tmp_path / "src" / "deep"
        nested.mkdir(parents=True)
        assert find_config(str(nested)) == str(tmp_path / ".togrc.yaml")

    def test_priority_order(self, tmp_path):
        (tmp_path / "tog.config.yml").write_text("entry: second\n")
        (tmp_path / ".togrc.yml").write_text("entry: first\n")
        assert load_config(start_dir=str(tmp_path)).entry == "first"

    def test_empty_file_gives_defaults(self, tmp_path):
        (tmp_path / ".togrc.yml").write_text("")
        assert load_config(start_dir=str(tmp_path)) == TogConfig()

    @pytest.mark.parametrize("content", [
        "max_call_depth: 0\n",
        "max_call_depth: lots\n",
        "format: xml\n",
        "log_level: LOUD\n",
        "strict_types: maybe\n",
        "- a\n- b\n",
        "entry: [unclosed\n",
    ])
    def test_invalid(self, tmp_path, content):
        (tmp_path / ".togrc.yml").write_text(content)
        with pytest.raises(ConfigError):
            load_config(start_dir=str(tmp_path))


class TestRun:

    def test_hello_world(self, program, capsys):
        assert main(["run", program(HELLO)]) == 0
        assert capsys.readouterr().out == "Hello, World\n"

    def test_custom_entry(self, program, capsys):
        path = program('fn start() { print("started") }')
        assert main(["run", path, "--entry", "start"]) == 0
        assert capsys.readouterr().out == "started\n"

    def test_entry_from_config(self, tmp_path, program, capsys):
        (tmp_path / ".togrc.yml").write_text("entry: start\n")
        path = program('fn start() { print("configured") }')
        assert main(["run", path]) == 0
        assert capsys.readouterr().out == "configured\n"

    def test_runtime_error_reported(self, program, capsys):
        path = program("fn main() { 1 / 0 }")
        assert main(["run", path]) == 1
        err = capsys.readouterr().err
        assert "[RuntimeError]" in err
        assert "Division by zero" in err

    def test_json_error_format(self, program, capsys):
        path = program("fn main() { unwrap(Option::None) }")
        assert main(["run", path, "--format", "json"]) == 1
        payload = json.loads(capsys.readouterr().err)
        assert payload[0]["kind"] == "PanicError"
        assert payload[0]["location"]["line"] == 1

    def test_type_findings_warn_but_run(self, program, capsys):
        path = program('fn main() { let x: int = "s"; print(x) }')
        assert main(["run", path]) == 0
        assert capsys.readouterr().out == "s\n"

    def test_strict_stops_on_type_findings(self, program, capsys):
        path = program('fn main() { let x: int = "s"; print(x) }')
        assert main(["run", path, "--strict"]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "[TypeError]" in captured.err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["run", str(tmp_path / "nope.tog")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_bad_config(self, tmp_path, program, capsys):
        (tmp_path / ".togrc.yml").write_text("format: xml\n")
        assert main(["run", program(HELLO)]) == 1
        assert "error" in json.loads(capsys.readouterr().err)


class TestOtherCommands:

    def test_check_ok(self, program, capsys):
        assert main(["check", program(HELLO)]) == 0
        assert capsys.readouterr().out.strip() == "ok"

    def test_check_json_ok(self, program, capsys):
        path = program(HELLO)
        assert main(["check", path, "--format", "json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"status": "ok", "file": path}

    def test_check_reports_findings(self, program, capsys):
        path = program("fn f(n: int) { n }\nfn main() { f(\"x\") }")
        assert main(["check", path, "--format", "json"]) == 1
        findings = json.loads(capsys.readouterr().out)
        assert findings[0]["kind"] == "TypeError"

    def test_check_reports_parse_error(self, program, capsys):
        assert main(["check", program("fn main( {")]) == 1
        assert "[ParseError]" in capsys.readouterr().out

    def test_tokens(self, program, capsys):
        assert main(["tokens", program("let x = 1")]) == 0
        tokens = json.loads(capsys.readouterr().out)
        assert [t["type"] for t in tokens] == ["LET", "IDENT", "ASSIGN", "INT_LIT", "EOF"]
        assert tokens[1]["value"] == "x"

    def test_tokens_lex_error(self, program, capsys):
        assert main(["tokens", program("@")]) == 1
        assert json.loads(capsys.readouterr().err)["kind"] == "LexError"

    def test_ast(self, program, capsys):
        assert main(["ast", program("fn main() { 1 + 2 }")]) == 0
        tree = json.loads(capsys.readouterr().out)
        assert tree["node"] == "Program"
        fn = tree["items"][0]
        assert fn["node"] == "FunctionDef" and fn["name"] == "main"
        assert fn["body"]["statements"][0]["expr"]["op"] == "+"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestExamplePrograms:
    """The programs under examples/ run and type-check cleanly."""

    EXAMPLES = os.path.join(os.path.dirname(__file__), "..", "..", "examples")

    def _path(self, name):
        return os.path.join(self.EXAMPLES, name)

    def test_hello(self, capsys):
        assert main(["run", self._path("hello.tog")]) == 0
        assert capsys.readouterr().out == "Hello, World\nCount: 42\nPi: 3.14\n"

    def test_shapes(self, capsys):
        assert main(["run", self._path("shapes.tog")]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("total area: 7.14")
        assert lines[1] == "square: true"

    def test_options(self, capsys):
        assert main(["run", self._path("options.tog")]) == 0
        assert capsys.readouterr().out.splitlines() == [
            "ok 3", "error: division by zero", "-1", "[2, 4, 6]",
        ]

    @pytest.mark.parametrize("name", ["hello.tog", "shapes.tog", "options.tog"])
    def test_check_clean(self, name, capsys):
        assert main(["check", self._path(name)]) == 0
