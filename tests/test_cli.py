"""Tests for the click command-line interface."""

import subprocess
from unittest import mock

import pytest
from click.testing import CliRunner

from vmrotate import cli as cli_module
from vmrotate.cli import cli

from tests.conftest import FakePlatform, make_backup


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_platform(monkeypatch):
    created = []

    def factory(name, config, notifier):
        platform = FakePlatform(config, notifier, failing={"broken"}, vms=["web", "db"])
        created.append(platform)
        return platform

    monkeypatch.setattr(cli_module, "get_platform", factory)
    return created


def weekly(root):
    return sorted(p.name for p in root.iterdir() if p.name.startswith("Weekly_"))


class TestRotateCommand:
    def test_rotate_exports(self, runner, root, fake_platform):
        result = runner.invoke(cli, ["rotate", "web", "db", "--root", str(root)])

        assert result.exit_code == 0, result.output
        folders = weekly(root)
        assert len(folders) == 1
        assert (root / folders[0] / "web").is_dir()
        assert "web: success" in result.output

    def test_rotate_all(self, runner, root, fake_platform):
        result = runner.invoke(cli, ["rotate", "--all", "--root", str(root), "--class", "Monthly"])

        assert result.exit_code == 0, result.output
        assert [name for name, _, _ in fake_platform[0].exports] == ["web", "db"]

    def test_rotate_all_aborts_when_listing_fails(self, runner, root):
        (root / "Weekly_2024_01_01_0000").mkdir()
        (root / "Weekly_2024_01_08_0000").mkdir()
        denied = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="Access denied")

        with mock.patch("vmrotate.platforms.subprocess.run", return_value=denied) as run:
            result = runner.invoke(cli, ["rotate", "--all", "--root", str(root), "--retain", "2"])

        assert result.exit_code == 1
        assert "Access denied" in result.output
        assert weekly(root) == ["Weekly_2024_01_01_0000", "Weekly_2024_01_08_0000"]
        run.assert_called_once()

    @pytest.mark.parametrize("error", [
        FileNotFoundError("powershell"),
        subprocess.TimeoutExpired("powershell", 30),
    ])
    def test_rotate_all_aborts_when_platform_unrunnable(self, runner, root, error):
        (root / "Weekly_2024_01_01_0000").mkdir()
        (root / "Weekly_2024_01_08_0000").mkdir()

        with mock.patch("vmrotate.platforms.subprocess.run", side_effect=error):
            result = runner.invoke(cli, ["rotate", "--all", "--root", str(root), "--retain", "2"])

        assert result.exit_code == 1
        assert not isinstance(result.exception, (OSError, subprocess.TimeoutExpired))
        assert "Rotation aborted" in result.output
        assert weekly(root) == ["Weekly_2024_01_01_0000", "Weekly_2024_01_08_0000"]

    def test_partial_failure_exit_code(self, runner, root, fake_platform):
        result = runner.invoke(cli, ["rotate", "web", "broken", "--root", str(root)])

        assert result.exit_code == 2
        assert "broken: failed" in result.output
        assert len(weekly(root)) == 1

    def test_missing_root_fails(self, runner, tmp_path, fake_platform):
        result = runner.invoke(cli, ["rotate", "web", "--root", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert not (tmp_path / "missing").exists()

    def test_dry_run(self, runner, root, fake_platform):
        (root / "Weekly_2024_01_01_0000").mkdir()
        (root / "Weekly_2024_01_08_0000").mkdir()

        result = runner.invoke(cli, ["rotate", "web", "--root", str(root), "--retain", "2", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Would delete: Weekly_2024_01_01_0000" in result.output
        assert weekly(root) == ["Weekly_2024_01_01_0000", "Weekly_2024_01_08_0000"]
        assert fake_platform[0].exports == []

    def test_confirm_declined(self, runner, root, fake_platform):
        result = runner.invoke(cli, ["rotate", "web", "--root", str(root), "--confirm"], input="n\n")

        assert result.exit_code == 0, result.output
        assert "web: skipped" in result.output
        assert fake_platform[0].exports == []

    def test_unknown_class(self, runner, root, fake_platform):
        result = runner.invoke(cli, ["rotate", "web", "--root", str(root), "--class", "Hourly"])

        assert result.exit_code == 1
        assert list(root.iterdir()) == []

    def test_retention_from_env(self, runner, root, fake_platform, monkeypatch):
        monkeypatch.setenv("VMROTATE_BACKUP_ROOT", str(root))
        monkeypatch.setenv("VMROTATE_RETENTION_COUNT", "1")
        (root / "Weekly_2024_01_01_0000").mkdir()

        result = runner.invoke(cli, ["rotate"])

        assert result.exit_code == 0, result.output
        assert "Weekly_2024_01_01_0000" not in weekly(root)
        assert len(weekly(root)) == 1


class TestLookupCommands:
    def test_find_latest(self, runner, root):
        make_backup(root, "Weekly_2024_01_05_0900", "web")
        make_backup(root, "Weekly_2024_01_05_1000", "web")

        result = runner.invoke(cli, ["find", "web", "--root", str(root)])

        assert result.exit_code == 0, result.output
        assert "2024-01-05 10:00" in result.output
        assert "Weekly_2024_01_05_0900" not in result.output

    def test_find_all(self, runner, root):
        make_backup(root, "Weekly_2024_01_05_0900", "web")
        make_backup(root, "Monthly_2024_01_01_0000", "web")

        result = runner.invoke(cli, ["find", "web", "--root", str(root), "--all"])

        assert result.exit_code == 0, result.output
        assert "Weekly_2024_01_05_0900" in result.output
        assert "Monthly_2024_01_01_0000" in result.output

    def test_find_missing(self, runner, root):
        result = runner.invoke(cli, ["find", "web", "--root", str(root)])
        assert result.exit_code == 1
        assert "No backup found" in result.output

    def test_restore(self, runner, root, fake_platform):
        make_backup(root, "Weekly_2024_01_08_0000", "web")

        result = runner.invoke(cli, ["restore", "web", "--root", str(root), "--yes"])

        assert result.exit_code == 0, result.output
        descriptor, copy, new_id = fake_platform[0].imports[0]
        assert descriptor.name == "web.vmcx"
        assert copy and new_id

    def test_restore_ambiguous(self, runner, root, fake_platform):
        make_backup(root, "Weekly_2024_01_08_0000", "web", descriptors=["A.vmcx", "B.vmcx"])

        result = runner.invoke(cli, ["restore", "web", "--root", str(root), "--yes"])

        assert result.exit_code == 1
        assert fake_platform[0].imports == []

    def test_list(self, runner, root, fake_platform):
        make_backup(root, "Weekly_2024_01_08_0000", "web", "db")

        result = runner.invoke(cli, ["list", "--root", str(root)])

        assert result.exit_code == 0, result.output
        assert "Weekly_2024_01_08_0000  db, web" in result.output
        assert "Monthly (0/2)" in result.output

    def test_vms(self, runner, fake_platform):
        result = runner.invoke(cli, ["vms"])

        assert result.exit_code == 0, result.output
        assert "web" in result.output and "db" in result.output

    @pytest.mark.parametrize("outcome", [
        {"return_value": subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="Access denied")},
        {"side_effect": PermissionError("powershell")},
        {"side_effect": subprocess.TimeoutExpired("powershell", 30)},
    ])
    def test_vms_reports_listing_failure(self, runner, outcome):
        with mock.patch("vmrotate.platforms.is_command_available", return_value=True), \
                mock.patch("vmrotate.platforms.subprocess.run", **outcome):
            result = runner.invoke(cli, ["vms"])

        assert result.exit_code == 1
        assert "Failed to list VMs" in result.output
        assert "No VMs found" not in result.output

    def test_find_rejects_path_like_name(self, runner, root):
        make_backup(root, "Weekly_2024_01_08_0000", "web")

        result = runner.invoke(cli, ["find", "../web", "--root", str(root)])

        assert result.exit_code == 1
        assert "path separators" in result.output


class TestInitCommand:
    def test_init_writes_config(self, runner, tmp_path, fake_platform):
        root = tmp_path / "vm-root"
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(cli, ["init", "--root", str(root)])

            assert result.exit_code == 0, result.output
            with open("vmrotate.yaml") as f:
                assert str(root) in f.read()
        assert root.is_dir()
        assert "VM platform: fake" in result.output
