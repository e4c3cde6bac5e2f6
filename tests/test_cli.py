from __future__ import annotations

import json
import random
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from cli.commands import CliState
from cli.main import build_cli
from conftest import DiagnosticLog, FakeDirectory, fatal
from core.services.hooks import EngineHooks


@pytest.fixture(scope="module")
def cli():
    return build_cli()


def _invoke(cli, args: list[str], directory: FakeDirectory, settings, log: DiagnosticLog | None = None):
    state = CliState(
        settings=settings,
        directory_factory=lambda _settings: directory,
        hooks=EngineHooks(diagnostic=log if log is not None else DiagnosticLog()),
        rng=random.Random(3),
    )
    return CliRunner().invoke(cli, args, obj=state)


def _csv(tmp_path: Path, text: str) -> str:
    path = tmp_path / "rows.csv"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_single_verb(cli, fast_settings) -> None:
    directory = FakeDirectory()

    result = _invoke(cli, ["users", "signOut", "--userKey", "a@ex.com"], directory, fast_settings)

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"userKey": "a@ex.com", "result": True}
    assert directory.calls == ["sign_out_user:a@ex.com"]
    assert directory.closed


def test_single_verb_missing_required_option_is_usage_error(cli, fast_settings) -> None:
    directory = FakeDirectory()

    result = _invoke(cli, ["members", "delete", "--groupKey", "g1"], directory, fast_settings)

    assert result.exit_code == 2
    assert directory.calls == []


def test_single_verb_remote_failure_exits_1(cli, fast_settings) -> None:
    directory = FakeDirectory(errors={"delete_user:a@ex.com": [fatal("Resource Not Found: userKey")]})
    log = DiagnosticLog()

    result = _invoke(cli, ["users", "delete", "--userKey", "a@ex.com"], directory, fast_settings, log)

    assert result.exit_code == 1
    assert result.stdout == ""
    assert log.lines == ["a@ex.com: fatal, HTTP 404 (notFound): Resource Not Found: userKey"]


def test_batch_buffer(cli, fast_settings, tmp_path: Path) -> None:
    path = _csv(tmp_path, "groupKey,memberKey\ng1,m1\ng1,m2\ng2,m1\n")

    result = _invoke(cli, ["members", "delete", "batch", "--input", path], FakeDirectory(), fast_settings)

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert len(payload) == 3
    assert all(set(item) == {"groupKey", "memberKey", "result"} for item in payload)


def test_batch_stream(cli, fast_settings, tmp_path: Path) -> None:
    path = _csv(tmp_path, "groupKey,memberKey\ng1,m1\ng1,m2\ng2,m1\n")

    result = _invoke(
        cli,
        ["members", "delete", "batch", "--input", path, "--stream", "--batchThreads", "2"],
        FakeDirectory(),
        fast_settings,
    )

    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert len(lines) == 3
    assert all(json.loads(line)["result"] is True for line in lines)


def test_batch_all_override_applies_to_every_row(cli, fast_settings, tmp_path: Path) -> None:
    directory = FakeDirectory()
    path = _csv(tmp_path, "email\na@ex.com\nb@ex.com\n")

    result = _invoke(
        cli,
        ["members", "insert", "batch", "--input", path, "--groupKey_ALL", "team@ex.com", "--role_ALL", "OWNER", "--compress"],
        directory,
        fast_settings,
    )

    assert result.exit_code == 0, result.output
    assert sorted(directory.calls) == ["insert_member:team@ex.com:a@ex.com", "insert_member:team@ex.com:b@ex.com"]
    assert all(body["role"] == "OWNER" for body in directory.bodies.values())


def test_batch_excluded_option_has_no_all_override(cli, fast_settings, tmp_path: Path) -> None:
    path = _csv(tmp_path, "groupKey\ng1\n")

    result = _invoke(
        cli,
        ["members", "delete", "batch", "--input", path, "--memberKey_ALL", "m1"],
        FakeDirectory(),
        fast_settings,
    )

    assert result.exit_code == 2


def test_batch_unknown_column_exits_2(cli, fast_settings, tmp_path: Path) -> None:
    directory = FakeDirectory()
    path = _csv(tmp_path, "groupKey,memberKey,extra\ng1,m1,x\n")

    result = _invoke(cli, ["members", "delete", "batch", "--input", path], directory, fast_settings)

    assert result.exit_code == 2
    assert directory.calls == []
    assert result.stdout == ""


def test_batch_rejected_row_exits_1(cli, fast_settings, tmp_path: Path) -> None:
    path = _csv(tmp_path, "groupKey,memberKey\ng1,m1\ng1\n")

    result = _invoke(cli, ["members", "delete", "batch", "--input", path], FakeDirectory(), fast_settings)

    assert result.exit_code == 1
    assert len(json.loads(result.stdout)) == 1


def test_recursive(cli, fast_settings) -> None:
    directory = FakeDirectory(
        org_units={"/sales": [["a@ex.com", "b@ex.com"]]},
        groups={"eng@ex.com": [["b@ex.com", "c@ex.com"]]},
    )

    result = _invoke(
        cli,
        ["users", "signOut", "recursive", "--orgUnit", "/sales", "--groupEmail", "eng@ex.com"],
        directory,
        fast_settings,
    )

    assert result.exit_code == 0, result.output
    assert sorted(directory.calls) == ["sign_out_user:a@ex.com", "sign_out_user:b@ex.com", "sign_out_user:c@ex.com"]


def test_recursive_requires_a_source(cli, fast_settings) -> None:
    result = _invoke(cli, ["users", "signOut", "recursive"], FakeDirectory(), fast_settings)
    assert result.exit_code == 2


def test_verbs_without_recursive_key_have_no_recursive_form(cli, fast_settings) -> None:
    result = _invoke(cli, ["users", "delete", "recursive", "--orgUnit", "/sales"], FakeDirectory(), fast_settings)
    assert result.exit_code == 2


def test_explicit_empty_value_is_force_sent(cli, fast_settings) -> None:
    directory = FakeDirectory()

    result = _invoke(
        cli,
        ["members", "patch", "--groupKey", "g1", "--memberKey", "m1", "--delivery_settings", ""],
        directory,
        fast_settings,
    )

    assert result.exit_code == 0, result.output
    assert directory.bodies["patch_member:g1:m1"] == {"delivery_settings": "", "kind": "admin#directory#member"}


def test_boolean_option(cli, fast_settings) -> None:
    directory = FakeDirectory()

    result = _invoke(cli, ["users", "makeAdmin", "--userKey", "a@ex.com", "--status"], directory, fast_settings)

    assert result.exit_code == 0, result.output
    assert directory.calls == ["make_admin:a@ex.com:true"]


def test_root_and_verb_tree_share_one_click(cli, fast_settings) -> None:
    assert isinstance(cli, click.Group)
    assert isinstance(cli.commands["doctor"], click.Group)
    assert isinstance(cli.commands["users"], click.Group)

    ok = _invoke(cli, ["users", "signOut", "--userKey", "a@ex.com"], FakeDirectory(), fast_settings)
    usage = _invoke(cli, ["users", "signOut", "--userKey"], FakeDirectory(), fast_settings)

    assert ok.exit_code == 0, ok.output
    assert ok.exception is None
    assert usage.exit_code == 2
