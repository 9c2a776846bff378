"""Locate the newest backup of a virtual machine and restore it."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import BackupNotFoundError, ConfigNotFoundError
from .naming import DEFAULT_CLASSES, DESCRIPTOR_FOLDER, compile_folder_pattern, parse_folder_name, parse_stamp
from .platforms import VMPlatform
from .utils import NotificationManager


def check_machine_name(machine_name: str) -> None:
    """Reject names that would not address a single subfolder of a backup."""
    if not machine_name or machine_name.strip() in (".", ".."):
        raise ValueError(f"Invalid machine name: {machine_name!r}")
    if "/" in machine_name or "\\" in machine_name:
        raise ValueError(f"Machine name must not contain path separators: {machine_name!r}")


@dataclass(frozen=True)
class BackupFolderRef:
    """A backup folder holding an export of one machine."""

    path: Path
    backup_class: str
    stamp: str
    machine_name: str

    @property
    def machine_path(self) -> Path:
        return self.path / self.machine_name

    @property
    def created_at(self) -> datetime:
        return parse_stamp(self.stamp)


@dataclass(frozen=True)
class ImportResult:
    machine_name: str
    backup: BackupFolderRef
    descriptor: Path


class BackupLocator:
    """Finds backups produced by ``RotationManager`` and imports them."""

    def __init__(self, platform: Optional[VMPlatform] = None,
                 notification_manager: Optional[NotificationManager] = None,
                 classes: Iterable[str] = DEFAULT_CLASSES):
        """Initialize backup locator.

        Args:
            platform: Platform used for descriptor patterns and imports
            notification_manager: Notification manager (defaults to the platform's)
            classes: Retention classes recognised in folder names
        """
        self.platform = platform
        self.notifier = notification_manager or (platform.notifier if platform else None)
        self.pattern = compile_folder_pattern(classes)

    def _log(self, level: str, message: str) -> None:
        if self.notifier:
            getattr(self.notifier, level)(message)

    def list_backups(self, root: Union[str, Path], machine_name: str) -> List[BackupFolderRef]:
        """List every backup of a machine, newest first.

        Folders without a ``Class_YYYY_MM_DD_HHMM`` stamp in their name are
        ignored.

        Raises:
            ValueError: If ``machine_name`` is empty or looks like a path
        """
        check_machine_name(machine_name)
        root_path = Path(root)
        candidates = []

        if not root_path.is_dir():
            self._log('warning', f"Backup root does not exist: {root_path}")
            return candidates

        # Equivalent to root/*/machine_name without glob metacharacters in VM names
        for folder in root_path.iterdir():
            if not (folder / machine_name).is_dir():
                continue
            parsed = parse_folder_name(folder.name, self.pattern)
            if parsed is None:
                self._log('debug', f"Ignoring non-backup folder: {folder.name}")
                continue
            backup_class, stamp = parsed
            candidates.append(BackupFolderRef(folder, backup_class, stamp, machine_name))

        # Plain string order on the zero-padded stamp is chronological
        candidates.sort(key=lambda ref: (ref.stamp, ref.path.name), reverse=True)
        return candidates

    def find_latest(self, root: Union[str, Path], machine_name: str) -> Optional[BackupFolderRef]:
        """Find the most recent backup of a machine.

        Args:
            root: Backup root directory
            machine_name: Name of the exported VM

        Returns:
            Reference to the newest backup folder, or None if there is none
        """
        candidates = self.list_backups(root, machine_name)
        if not candidates:
            self._log('warning', f"No backup found for '{machine_name}' in {root}")
            return None

        latest = candidates[0]
        self._log('info', f"Latest backup of '{machine_name}': {latest.path.name}")
        return latest

    def find_descriptor(self, backup: BackupFolderRef, descriptor_name: Optional[str] = None) -> Path:
        """Pick the configuration descriptor inside a backup.

        Exactly one descriptor must exist unless ``descriptor_name`` names the
        one to use.

        Raises:
            ConfigNotFoundError: If no descriptor, or more than one, is found
        """
        descriptor_dir = backup.machine_path / DESCRIPTOR_FOLDER
        if not descriptor_dir.is_dir():
            raise ConfigNotFoundError(f"No '{DESCRIPTOR_FOLDER}' folder in {backup.machine_path}")

        if descriptor_name:
            descriptor = descriptor_dir / descriptor_name
            if not descriptor.is_file():
                raise ConfigNotFoundError(f"Descriptor not found: {descriptor}")
            return descriptor

        patterns = self.platform.descriptor_patterns if self.platform else ("*.vmcx", "*.xml")
        matches = sorted({p for pattern in patterns for p in descriptor_dir.glob(pattern) if p.is_file()})

        if not matches:
            raise ConfigNotFoundError(
                f"No configuration descriptor ({', '.join(patterns)}) in {descriptor_dir}"
            )
        if len(matches) > 1:
            names = ', '.join(p.name for p in matches)
            raise ConfigNotFoundError(
                f"Multiple configuration descriptors in {descriptor_dir} ({names}); choose one explicitly"
            )
        return matches[0]

    def import_latest(self, root: Union[str, Path], machine_name: str,
                      descriptor_name: Optional[str] = None) -> ImportResult:
        """Import the newest backup of a machine as a new VM.

        The platform is asked to copy the files and generate a new VM ID so
        the import never collides with a machine that is still registered.

        Raises:
            BackupNotFoundError: If no backup of the machine exists
            ConfigNotFoundError: If the descriptor cannot be chosen
            ImportFailedError: If the platform import fails
        """
        if self.platform is None:
            raise ValueError("A VM platform is required to import backups")

        latest = self.find_latest(root, machine_name)
        if latest is None:
            raise BackupNotFoundError(f"No backup of '{machine_name}' found in {root}")

        descriptor = self.find_descriptor(latest, descriptor_name)
        self._log('info', f"Importing '{machine_name}' from {descriptor}")

        self.platform.import_vm(descriptor, copy=True, generate_new_id=True)

        self._log('success', f"Imported '{machine_name}' from {latest.path.name}")
        return ImportResult(machine_name, latest, descriptor)
