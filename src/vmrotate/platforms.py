"""Virtualization platform adapters for exporting and importing VMs."""

import re
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Tuple, Union

from .errors import ExportError, ImportFailedError, VMListError
from .naming import DESCRIPTOR_FOLDER
from .utils import NotificationManager, ensure_directory, is_command_available


class VMPlatform(ABC):
    """Abstract base class for VM platform implementations."""

    def __init__(self, config, notifier: NotificationManager):
        self.config = config
        self.notifier = notifier
        self.timeout = config.vm_timeout

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return platform name."""

    @property
    @abstractmethod
    def command_name(self) -> str:
        """Return command name for platform."""

    @property
    @abstractmethod
    def descriptor_patterns(self) -> Tuple[str, ...]:
        """Glob patterns of configuration descriptors inside ``Virtual Machines``."""

    @abstractmethod
    def list_vms(self) -> List[str]:
        """List names of registered VMs.

        Raises:
            VMListError: If the platform cannot be queried
        """

    @abstractmethod
    def export_vm(self, vm_name: str, destination: Union[str, Path], as_job: bool = False) -> None:
        """Export a VM into ``destination/vm_name``.

        Raises:
            ExportError: If the platform rejects the export
        """

    @abstractmethod
    def import_vm(self, descriptor: Union[str, Path], copy: bool = True,
                  generate_new_id: bool = True) -> None:
        """Register a new VM from an exported descriptor.

        Raises:
            ImportFailedError: If the platform rejects the import
        """

    def is_available(self) -> bool:
        """Check if platform is available."""
        return is_command_available(self.command_name)

    def _run_command(self, command: List[str]) -> subprocess.CompletedProcess:
        """Run command with timeout and error handling."""
        self.notifier.debug(f"Running: {' '.join(command)}")
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            self.notifier.error(f"Command timeout: {' '.join(command)}")
            raise
        except OSError as e:
            self.notifier.error(f"Command execution failed: {str(e)}")
            raise

    def _list_output(self, command: List[str]) -> str:
        """Run a listing command and return its stdout.

        An unqueryable platform is an error, never an empty VM list.
        """
        try:
            result = self._run_command(command)
        except (subprocess.TimeoutExpired, OSError) as e:
            raise VMListError(f"Cannot list {self.platform_name} VMs: {e}") from e

        if result.returncode != 0:
            raise VMListError(
                f"Cannot list {self.platform_name} VMs: "
                f"{result.stderr.strip() or f'exit code {result.returncode}'}"
            )
        return result.stdout


def quote_powershell(value: Union[str, Path]) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + str(value).replace("'", "''") + "'"


class HyperVPlatform(VMPlatform):
    """Hyper-V implementation driving the PowerShell Hyper-V module."""

    @property
    def platform_name(self) -> str:
        return "hyperv"

    @property
    def command_name(self) -> str:
        return "powershell"

    @property
    def descriptor_patterns(self) -> Tuple[str, ...]:
        # .vmcx since Windows Server 2016, .xml before
        return ("*.vmcx", "*.xml")

    def _run_powershell(self, script: str) -> subprocess.CompletedProcess:
        return self._run_command([
            self.command_name, "-NoProfile", "-NonInteractive", "-Command", script
        ])

    def list_vms(self) -> List[str]:
        """List Hyper-V VMs."""
        output = self._list_output([
            self.command_name, "-NoProfile", "-NonInteractive", "-Command",
            "Get-VM | Select-Object -ExpandProperty Name"
        ])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def export_vm(self, vm_name: str, destination: Union[str, Path], as_job: bool = False) -> None:
        """Export a Hyper-V VM, optionally as a background job."""
        script = f"Export-VM -Name {quote_powershell(vm_name)} -Path {quote_powershell(destination)}"
        if as_job:
            script += " -AsJob | Out-Null"

        try:
            result = self._run_powershell(script)
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ExportError(f"Export of '{vm_name}' did not complete: {e}") from e

        if result.returncode != 0:
            raise ExportError(result.stderr.strip() or f"Export-VM exited with code {result.returncode}")

    def import_vm(self, descriptor: Union[str, Path], copy: bool = True,
                  generate_new_id: bool = True) -> None:
        """Import a Hyper-V VM from its configuration file."""
        script = f"Import-VM -Path {quote_powershell(descriptor)}"
        if copy:
            script += " -Copy"
        if generate_new_id:
            script += " -GenerateNewId"

        try:
            result = self._run_powershell(script)
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ImportFailedError(f"Import of '{descriptor}' did not complete: {e}") from e

        if result.returncode != 0:
            raise ImportFailedError(result.stderr.strip() or f"Import-VM exited with code {result.returncode}")


class VirtualBoxPlatform(VMPlatform):
    """VirtualBox implementation exporting OVF appliances."""

    @property
    def platform_name(self) -> str:
        return "virtualbox"

    @property
    def command_name(self) -> str:
        return "vboxmanage"

    @property
    def descriptor_patterns(self) -> Tuple[str, ...]:
        return ("*.ovf",)

    def list_vms(self) -> List[str]:
        """List VirtualBox VMs."""
        output = self._list_output([self.command_name, "list", "vms"])

        vms = []
        for line in output.splitlines():
            match = re.match(r'"([^"]+)"\s+\{([^}]+)\}', line)
            if match:
                vms.append(match.group(1))
        return vms

    def export_vm(self, vm_name: str, destination: Union[str, Path], as_job: bool = False) -> None:
        """Export a VirtualBox VM to ``destination/vm_name/Virtual Machines/vm_name.ovf``."""
        target_dir = ensure_directory(Path(destination) / vm_name / DESCRIPTOR_FOLDER)
        command = [self.command_name, "export", vm_name, "-o", str(target_dir / f"{vm_name}.ovf")]

        if as_job:
            # Fire-and-forget: own session so it outlives us; the outcome is left to VirtualBox
            try:
                subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    start_new_session=True,
                )
            except OSError as e:
                raise ExportError(f"Could not start export of '{vm_name}': {e}") from e
            return

        try:
            result = self._run_command(command)
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ExportError(f"Export of '{vm_name}' did not complete: {e}") from e

        if result.returncode != 0:
            raise ExportError(result.stderr.strip() or f"vboxmanage export exited with code {result.returncode}")

    def import_vm(self, descriptor: Union[str, Path], copy: bool = True,
                  generate_new_id: bool = True) -> None:
        """Import an OVF appliance.

        VirtualBox always copies disks and assigns new UUIDs on import, so
        ``copy`` and ``generate_new_id`` only need to be honoured for MACs.
        """
        command = [self.command_name, "import", str(descriptor)]
        if not generate_new_id:
            command += ["--options", "keepallmacs"]

        try:
            result = self._run_command(command)
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ImportFailedError(f"Import of '{descriptor}' did not complete: {e}") from e

        if result.returncode != 0:
            raise ImportFailedError(result.stderr.strip() or f"vboxmanage import exited with code {result.returncode}")


PLATFORMS = {
    "hyperv": HyperVPlatform,
    "virtualbox": VirtualBoxPlatform,
}


def get_platform(name: str, config, notifier: NotificationManager) -> VMPlatform:
    """Instantiate the platform registered under ``name``."""
    try:
        platform_cls = PLATFORMS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown VM platform: {name} (supported: {', '.join(sorted(PLATFORMS))})"
        ) from None
    return platform_cls(config, notifier)
