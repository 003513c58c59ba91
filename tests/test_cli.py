"""Tests for the layerkit CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from layerkit import __version__
from layerkit.cli import main

if TYPE_CHECKING:
    from pathlib import Path


def _invoke(*args: str) -> tuple[int, str]:
    result = CliRunner().invoke(main, list(args))
    return result.exit_code, result.output


class TestMain:
    def test_version(self) -> None:
        code, output = _invoke("--version")
        assert code == 0
        assert __version__ in output

    def test_help_lists_commands(self) -> None:
        code, output = _invoke("--help")
        assert code == 0
        for command in ("fields", "entity", "detect", "integrate"):
            assert command in output


# ---------------------------------------------------------------------------
# fields
# ---------------------------------------------------------------------------


class TestFieldsCommand:
    def test_table(self) -> None:
        code, output = _invoke("fields", "name:string,deleted:*time.Time")
        assert code == 0
        assert "Name" in output
        assert "*time.Time" in output

    def test_json(self) -> None:
        code, output = _invoke("fields", " name : string ,tags:[]string", "--json")
        assert code == 0
        data = json.loads(output)
        assert data["canonical"] == "name:string,tags:[]string"
        assert data["fields"][1] == {
            "name": "tags",
            "type": "[]string",
            "go_name": "Tags",
            "go_type": "[]string",
            "semantic": "Collection(element=Primitive(kind='string'))",
            "pointer": False,
            "slice": True,
        }

    def test_malformed(self) -> None:
        code, output = _invoke("fields", "name:string,,age:int")
        assert code == 1
        assert "Error:" in output

    def test_strict_names(self) -> None:
        assert _invoke("fields", "type:string")[0] == 0
        code, output = _invoke("fields", "type:string", "--strict-names")
        assert code == 1
        assert "'type'" in output


# ---------------------------------------------------------------------------
# entity
# ---------------------------------------------------------------------------


class TestEntityCommand:
    def test_writes_entity(self, go_project: Path) -> None:
        code, output = _invoke(
            "entity",
            "Order",
            "--fields",
            "total:float64,code:string",
            "--timestamps",
            "--project",
            str(go_project),
        )
        assert code == 0
        assert "Created internal/domain/order.go" in output
        text = (go_project / "internal" / "domain" / "order.go").read_text(encoding="utf-8")
        assert "type Order struct {" in text
        assert "CreatedAt time.Time" in text

    def test_refuses_to_overwrite(self, go_project: Path) -> None:
        target = go_project / "internal" / "domain" / "user.go"
        before = target.read_text(encoding="utf-8")
        code, output = _invoke("entity", "User", "--fields", "name:string", "--project", str(go_project))
        assert code == 1
        assert "already exists" in output
        assert target.read_text(encoding="utf-8") == before

    def test_force(self, go_project: Path) -> None:
        code, _ = _invoke(
            "entity", "User", "--fields", "email:string", "--force", "--project", str(go_project)
        )
        assert code == 0
        text = (go_project / "internal" / "domain" / "user.go").read_text(encoding="utf-8")
        assert "\tEmail string " in text

    def test_stdout(self, go_project: Path) -> None:
        code, output = _invoke(
            "entity", "Tag", "--fields", "label:string", "--stdout", "--project", str(go_project)
        )
        assert code == 0
        assert output.startswith("package domain\n")
        assert not (go_project / "internal" / "domain" / "tag.go").exists()

    def test_invalid_name(self, go_project: Path) -> None:
        code, output = _invoke("entity", "tag", "--fields", "label:string", "--project", str(go_project))
        assert code == 1
        assert "invalid entity name" in output

    def test_invalid_fields(self, go_project: Path) -> None:
        code, output = _invoke("entity", "Tag", "--fields", "label:foo", "--project", str(go_project))
        assert code == 1
        assert "'foo'" in output


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


class TestDetectCommand:
    def test_json(self, go_project: Path) -> None:
        code, output = _invoke("detect", "--json", "--project", str(go_project))
        assert code == 0
        data = json.loads(output)
        assert [f["name"] for f in data["features"]] == ["Invoice", "Product", "User"]
        assert data["features"][2]["complete"] is True

    def test_table(self, go_project: Path) -> None:
        code, output = _invoke("detect", "--project", str(go_project))
        assert code == 0
        assert "Product" in output
        assert "missing handler" in output

    def test_empty_project(self, tmp_path: Path) -> None:
        code, output = _invoke("detect", "--project", str(tmp_path))
        assert code == 0
        assert "No features detected." in output

    def test_missing_project_dir(self, tmp_path: Path) -> None:
        code, _ = _invoke("detect", "--project", str(tmp_path / "nope"))
        assert code == 2


# ---------------------------------------------------------------------------
# integrate
# ---------------------------------------------------------------------------


class TestIntegrateCommand:
    def test_text_output(self, go_project: Path) -> None:
        code, output = _invoke("integrate", "--project", str(go_project))
        assert code == 0
        assert "+ User: bound and routed" in output
        assert "x Invoice: failed" in output
        assert "2 integrated, 0 partial, 1 failed" in output
        assert (go_project / "main.go").is_file()

    def test_json_and_rerun(self, go_project: Path) -> None:
        _invoke("integrate", "--project", str(go_project))
        code, output = _invoke(
            "integrate", "--json", "--features", "User,Product", "--project", str(go_project)
        )
        assert code == 0
        data = json.loads(output)
        assert data["ok"] is True
        assert data["changed_files"] == []
        assert {f["state"] for f in data["features"]} == {"already_integrated"}

    def test_dry_run_with_diff(self, go_project: Path) -> None:
        code, output = _invoke(
            "integrate", "--dry-run", "--diff", "-f", "User", "--project", str(go_project)
        )
        assert code == 0
        assert "+++ b/internal/di/container.go" in output
        assert "+\tuserRepo repository.UserRepository" in output
        assert "would be bound and routed" in output
        assert not (go_project / "main.go").exists()

    def test_json_diff(self, go_project: Path) -> None:
        code, output = _invoke(
            "integrate", "--json", "--dry-run", "--diff", "-f", "User", "--project", str(go_project)
        )
        assert code == 0
        data = json.loads(output)
        assert set(data["diff"]) == {"internal/di/container.go", "main.go"}

    def test_all_failed_exits_nonzero(self, go_project: Path) -> None:
        code, output = _invoke("integrate", "-f", "Invoice,Ghost", "--project", str(go_project))
        assert code == 1
        assert "x Ghost: failed - feature not detected" in output

    def test_partial_only_prints_manual_instructions_and_fails(self, go_project: Path) -> None:
        (go_project / "main.go").write_text("package main\n\nfunc main() {}\n", encoding="utf-8")
        code, output = _invoke("integrate", "-f", "User", "--project", str(go_project))
        assert code == 1
        assert "Manual integration for User:" in output
        assert '  import "github.com/acme/shop/internal/di"' in output
