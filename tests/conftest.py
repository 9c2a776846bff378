"""Shared fixtures for VMRotate tests."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from vmrotate.config import Config
from vmrotate.errors import ExportError, ImportFailedError
from vmrotate.naming import DESCRIPTOR_FOLDER
from vmrotate.platforms import VMPlatform
from vmrotate.utils import NotificationManager


class FakePlatform(VMPlatform):
    """Platform double that writes a minimal export and records every call."""

    def __init__(self, config, notifier, failing=(), vms=()):
        super().__init__(config, notifier)
        self.failing = set(failing)
        self.vms = list(vms)
        self.exports = []
        self.imports = []

    @property
    def platform_name(self):
        return "fake"

    @property
    def command_name(self):
        return "fake"

    @property
    def descriptor_patterns(self):
        return ("*.vmcx", "*.xml")

    def is_available(self):
        return True

    def list_vms(self):
        return list(self.vms)

    def export_vm(self, vm_name, destination, as_job=False):
        self.exports.append((vm_name, Path(destination), as_job))
        if vm_name in self.failing:
            raise ExportError(f"{vm_name} is locked")
        target = Path(destination) / vm_name / DESCRIPTOR_FOLDER
        target.mkdir(parents=True, exist_ok=True)
        (target / f"{vm_name}.vmcx").write_text("config")

    def import_vm(self, descriptor, copy=True, generate_new_id=True):
        self.imports.append((Path(descriptor), copy, generate_new_id))
        if "broken" in str(descriptor):
            raise ImportFailedError("import refused")


class StepClock:
    """Clock that advances by a fixed step on every call."""

    def __init__(self, start, step=timedelta(days=7)):
        self.current = start - step
        self.step = step

    def __call__(self):
        self.current += self.step
        return self.current


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in Config.ENV_MAPPINGS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def notifier(config):
    return NotificationManager(config)


@pytest.fixture
def platform(config, notifier):
    return FakePlatform(config, notifier)


@pytest.fixture
def root(tmp_path):
    d = tmp_path / "backups"
    d.mkdir()
    return d


def make_backup(root, folder, *machines, descriptors=None):
    """Create ``root/folder/<machine>/Virtual Machines/<descriptors>``."""
    path = root / folder
    path.mkdir(exist_ok=True)
    for machine in machines:
        vm_dir = path / machine / DESCRIPTOR_FOLDER
        vm_dir.mkdir(parents=True)
        for name in (descriptors if descriptors is not None else [f"{machine}.vmcx"]):
            (vm_dir / name).write_text("config")
    return path
