from dataclasses import replace

import pytest

from autocommit.core import cron
from autocommit.core.cron import CrontabTable, ScheduleEntry, ScheduleRegistry
from autocommit.core.errors import (
    DuplicateEntry,
    IOFailure,
    MissingCredential,
    NotAWorkingTree,
    NotFound,
    ParseError,
)
from autocommit.core.util import CmdResult

from conftest import FakeTable


FOREIGN = ["MAILTO=ops@example.com", "0 3 * * * /usr/bin/backup --all"]


@pytest.fixture
def settings(settings):
    return replace(settings, api_key="sk-test")


def _owned(registry):
    return [line for line in registry.table.lines if "autocommit" in line]


def test_parse_splits_cadence_command_and_args():
    """Tokens 0-4 are the cadence, token 5 the command, the rest args."""
    entry = ScheduleEntry.parse("*/5 * * * * /bin/autocommit run /src/app >> /src/app/.autocommit_log 2>&1")
    assert entry.cadence == ("*/5", "*", "*", "*", "*")
    assert entry.command == "/bin/autocommit"
    assert entry.args == ("run", "/src/app", ">>", "/src/app/.autocommit_log", "2>&1")
    assert entry.identity_key == "/src/app"


def test_serialize_inverts_parse():
    line = "*/15 * * * * /bin/autocommit run /src/app >> /src/app/.autocommit_log 2>&1"
    assert ScheduleEntry.parse(line).serialize() == line


def test_serialize_normalizes_whitespace():
    line = "*/15  *\t* * *   /bin/autocommit run   /src/app"
    assert ScheduleEntry.parse(line).serialize() == "*/15 * * * * /bin/autocommit run /src/app"


@pytest.mark.parametrize(
    "line",
    [
        "",
        "* * * *",
        "* * * * * /bin/autocommit",
    ],
)
def test_parse_rejects_incomplete_lines(line):
    with pytest.raises(ParseError):
        ScheduleEntry.parse(line)


def test_identity_key_absent_with_single_arg():
    entry = ScheduleEntry.parse("* * * * * /bin/autocommit list")
    assert entry.identity_key is None


def test_for_repo_builds_redirected_run_entry():
    entry = ScheduleEntry.for_repo("/src/app", 10, "/opt/bin/autocommit")
    assert entry.serialize() == (
        "*/10 * * * * /opt/bin/autocommit run /src/app >> /src/app/.autocommit_log 2>&1"
    )


def test_for_repo_rejects_zero_frequency():
    with pytest.raises(ValueError):
        ScheduleEntry.for_repo("/src/app", 0, "/opt/bin/autocommit")


def test_add_then_list_has_exactly_one_entry(settings, fake_repo):
    registry = ScheduleRegistry(settings, FakeTable())
    registry.add(fake_repo, 5)
    entries = registry.list()
    assert [e.identity_key for e in entries] == [fake_repo]
    assert entries[0].cadence[0] == "*/5"
    assert entries[0].command == "/usr/local/bin/autocommit"


def test_add_canonicalizes_path(settings, fake_repo, tmp_path):
    registry = ScheduleRegistry(settings, FakeTable())
    link = tmp_path / "link"
    link.symlink_to(fake_repo)
    entry = registry.add(str(link) + "/", 5)
    assert entry.identity_key == fake_repo


def test_add_twice_fails_and_leaves_table_unchanged(settings, fake_repo):
    table = FakeTable()
    registry = ScheduleRegistry(settings, table)
    registry.add(fake_repo, 5)
    before = list(table.lines)

    with pytest.raises(DuplicateEntry):
        registry.add(fake_repo, 30)

    assert table.lines == before
    assert table.installs == 1


def test_add_rejects_non_repository(settings, tmp_path):
    table = FakeTable(FOREIGN)
    registry = ScheduleRegistry(settings, table)
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(NotAWorkingTree):
        registry.add(str(plain), 5)

    assert table.installs == 0
    assert table.lines == FOREIGN


def test_remove_unknown_path_fails_and_leaves_table_unchanged(settings, fake_repo, tmp_path):
    table = FakeTable()
    registry = ScheduleRegistry(settings, table)
    registry.add(fake_repo, 5)
    before = list(table.lines)

    with pytest.raises(NotFound):
        registry.remove(str(tmp_path / "elsewhere"))

    assert table.lines == before


def test_remove_after_add_leaves_no_entry(settings, fake_repo):
    registry = ScheduleRegistry(settings, FakeTable())
    registry.add(fake_repo, 5)
    removed = registry.remove(fake_repo)
    assert removed.identity_key == fake_repo
    assert all(e.identity_key != fake_repo for e in registry.list())


def test_write_preserves_foreign_lines(settings, fake_repo):
    table = FakeTable(FOREIGN)
    registry = ScheduleRegistry(settings, table)

    registry.add(fake_repo, 5)
    registry.remove(fake_repo)

    assert table.lines[: len(FOREIGN)] == FOREIGN
    assert _owned(registry) == []


def test_write_exports_credential_once(fake_repo, tmp_path, settings):
    other = tmp_path / "other"
    (other / ".git").mkdir(parents=True)
    table = FakeTable(FOREIGN)
    registry = ScheduleRegistry(settings, table)

    registry.add(fake_repo, 5)
    registry.add(str(other), 10)

    credential_lines = [l for l in table.lines if l.startswith("OPENAI_API_KEY=")]
    assert credential_lines == ["OPENAI_API_KEY=sk-test"]
    assert table.lines.index(credential_lines[0]) < table.lines.index(_owned(registry)[0])
    assert len(registry.list()) == 2


def test_write_requires_credential(settings, fake_repo):
    settings = replace(settings, api_key=None)
    table = FakeTable(FOREIGN)
    registry = ScheduleRegistry(settings, table)

    with pytest.raises(MissingCredential):
        registry.add(fake_repo, 5)

    assert table.installs == 0


def test_list_ignores_foreign_lines(settings):
    table = FakeTable(FOREIGN + ["*/5 * * * * /bin/autocommit run /src/app"])
    entries = ScheduleRegistry(settings, table).list()
    assert [e.identity_key for e in entries] == ["/src/app"]


def test_list_fails_on_malformed_owned_line(settings):
    table = FakeTable(FOREIGN + ["@reboot /bin/autocommit"])
    with pytest.raises(ParseError):
        ScheduleRegistry(settings, table).list()


def test_crontab_read_treats_missing_table_as_empty(monkeypatch, tmp_path):
    monkeypatch.setattr(cron, "run", lambda *a, **kw: CmdResult(1, "", "no crontab for tester"))
    assert CrontabTable(str(tmp_path / "staging.txt")).read() == []


def test_crontab_read_surfaces_other_failures(monkeypatch, tmp_path):
    monkeypatch.setattr(cron, "run", lambda *a, **kw: CmdResult(1, "", "permission denied"))
    with pytest.raises(IOFailure):
        CrontabTable(str(tmp_path / "staging.txt")).read()


def test_crontab_install_writes_staging_file(monkeypatch, tmp_path):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return CmdResult(0, "", "")

    monkeypatch.setattr(cron, "run", fake_run)
    staging = tmp_path / "staging.txt"
    CrontabTable(str(staging)).install(["A=1", "* * * * * /bin/autocommit run /x"])

    assert staging.read_text(encoding="utf-8") == "A=1\n* * * * * /bin/autocommit run /x\n"
    assert calls == [["crontab", str(staging)]]


def test_foreign_credential_assignment_is_left_in_place(settings, fake_repo):
    """Another job's own OPENAI_API_KEY line keeps its position and value."""
    foreign = ["OPENAI_API_KEY=sk-theirs", "0 3 * * * /usr/bin/nightly-summary"]
    table = FakeTable(foreign)
    registry = ScheduleRegistry(settings, table)

    registry.add(fake_repo, 5)

    assert table.lines[:2] == foreign
    assert table.lines[2:4] == ["", "OPENAI_API_KEY=sk-test"]
    assert [e.identity_key for e in registry.list()] == [fake_repo]


def test_only_own_credential_line_is_replaced(settings, fake_repo, tmp_path):
    foreign = ["OPENAI_API_KEY=sk-theirs", "0 3 * * * /usr/bin/nightly-summary"]
    table = FakeTable(foreign)
    registry = ScheduleRegistry(settings, table)
    other = tmp_path / "other"
    (other / ".git").mkdir(parents=True)

    registry.add(fake_repo, 5)
    registry.add(str(other), 10)

    credential_lines = [l for l in table.lines if l.startswith("OPENAI_API_KEY=")]
    assert credential_lines == ["OPENAI_API_KEY=sk-theirs", "OPENAI_API_KEY=sk-test"]


def test_removing_last_entry_drops_own_block(settings, fake_repo):
    foreign = ["0 3 * * * /usr/bin/nightly-summary", "OPENAI_API_KEY=sk-theirs"]
    table = FakeTable(foreign)
    registry = ScheduleRegistry(settings, table)

    registry.add(fake_repo, 5)
    registry.remove(fake_repo)

    assert table.lines == foreign
