"""Backup rotation: prune the oldest folder of a class, create a new one, export VMs into it."""

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .errors import DeletionError, EnumerationError, FolderCreationError
from .naming import class_prefix, folder_name
from .platforms import VMPlatform
from .utils import NotificationManager, folder_creation_time

SUCCESS = "success"
SKIPPED = "skipped"
FAILED = "failed"

ConfirmCallback = Callable[[str, Path], bool]


@dataclass
class ExportOutcome:
    machine_name: str
    status: str
    reason: Optional[str] = None


@dataclass
class RotationResult:
    """Outcome of one rotation run."""

    folder: Path
    deleted: Optional[Path] = None
    deletion_error: Optional[str] = None
    outcomes: List[ExportOutcome] = field(default_factory=list)

    def _with_status(self, status: str) -> List[ExportOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> List[ExportOutcome]:
        return self._with_status(SUCCESS)

    @property
    def skipped(self) -> List[ExportOutcome]:
        return self._with_status(SKIPPED)

    @property
    def failed(self) -> List[ExportOutcome]:
        return self._with_status(FAILED)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed) or self.deletion_error is not None


@dataclass
class RotationPlan:
    """What a rotation would do, without doing it."""

    existing: List[Path]
    to_delete: Optional[Path]
    new_folder: Path


class RotationManager:
    """Creates dated backup folders and keeps each class within its retention count."""

    def __init__(self, platform: VMPlatform, notification_manager: Optional[NotificationManager] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize rotation manager.

        Args:
            platform: Platform used to export virtual machines
            notification_manager: Notification manager (defaults to the platform's)
            clock: Source of the current time for folder names
        """
        self.platform = platform
        self.notifier = notification_manager or platform.notifier
        self.clock = clock

    def list_folders(self, root: Union[str, Path], backup_class: str) -> List[Path]:
        """List backup folders of one class, oldest first.

        Args:
            root: Backup root directory
            backup_class: Retention class, e.g. ``Weekly``

        Returns:
            Folder paths sorted by creation time, then name

        Raises:
            EnumerationError: If the root cannot be listed
        """
        root_path = Path(root)
        prefix = class_prefix(backup_class)

        try:
            folders = [
                entry for entry in root_path.iterdir()
                if entry.is_dir() and entry.name.startswith(prefix)
            ]
            folders.sort(key=lambda p: (folder_creation_time(p), p.name))
        except OSError as e:
            raise EnumerationError(f"Cannot list backup root {root_path}: {e}") from e

        return folders

    def _select_oldest(self, folders: List[Path], retain: int) -> Optional[Path]:
        if len(folders) >= retain:
            return folders[0]
        return None

    def plan(self, root: Union[str, Path], backup_class: str, retain: int = 2) -> RotationPlan:
        """Work out the deletion and the new folder name without touching the disk."""
        self._check_retain(retain)
        folders = self.list_folders(root, backup_class)
        return RotationPlan(
            existing=folders,
            to_delete=self._select_oldest(folders, retain),
            new_folder=Path(root) / folder_name(backup_class, self.clock()),
        )

    def rotate(self, root: Union[str, Path], backup_class: str, retain: int = 2,
               machine_names: Iterable[str] = (), use_background_job: bool = False,
               confirm: Optional[ConfirmCallback] = None) -> RotationResult:
        """Run one rotation.

        Deletes the oldest folder of ``backup_class`` when ``retain`` folders
        already exist, creates a new timestamped folder and exports each
        machine into it. A failed deletion or export is logged and recorded
        but never stops the run.

        Args:
            root: Backup root directory
            backup_class: Retention class, e.g. ``Weekly``
            retain: Number of folders to keep per class
            machine_names: VMs to export, in order, duplicates kept
            use_background_job: Hand each export to the platform as a background job
            confirm: Called with ``(machine_name, folder)`` before each export;
                a false return skips the machine

        Returns:
            RotationResult with the new folder and per-machine outcomes

        Raises:
            EnumerationError: If the root cannot be listed
            FolderCreationError: If the new folder cannot be created
        """
        self._check_retain(retain)
        self.notifier.info(f"Starting {backup_class} rotation in {root} (retain {retain})")

        folders = self.list_folders(root, backup_class)
        self.notifier.info(f"Found {len(folders)} existing {backup_class} folders")

        deleted = None
        deletion_error = None
        oldest = self._select_oldest(folders, retain)
        if oldest is not None:
            try:
                self._delete_folder(oldest)
                deleted = oldest
                self.notifier.info(f"Deleted oldest backup folder: {oldest.name}")
            except DeletionError as e:
                deletion_error = str(e)
                self.notifier.warning(f"{e}; continuing with the new backup")

        folder = self._create_folder(Path(root), backup_class)
        result = RotationResult(folder=folder, deleted=deleted, deletion_error=deletion_error)

        for machine_name in machine_names:
            result.outcomes.append(
                self._export_one(machine_name, folder, use_background_job, confirm)
            )

        if result.failed:
            self.notifier.warning(
                f"Rotation finished with {len(result.failed)} failed exports: "
                f"{', '.join(o.machine_name for o in result.failed)}"
            )
        else:
            self.notifier.success(
                f"Rotation completed: {folder.name} "
                f"({len(result.succeeded)} exported, {len(result.skipped)} skipped)"
            )

        return result

    @staticmethod
    def _check_retain(retain: int) -> None:
        if retain < 1:
            raise ValueError(f"Retention count must be at least 1, got {retain}")

    def _delete_folder(self, folder: Path) -> None:
        try:
            shutil.rmtree(folder)
        except OSError as e:
            raise DeletionError(f"Failed to delete {folder}: {e}") from e

    def _create_folder(self, root: Path, backup_class: str) -> Path:
        folder = root / folder_name(backup_class, self.clock())
        try:
            folder.mkdir()
        except OSError as e:
            self.notifier.failure(f"Cannot create backup folder {folder}: {e}")
            raise FolderCreationError(f"Cannot create backup folder {folder}: {e}") from e

        self.notifier.info(f"Created backup folder: {folder}")
        return folder

    def _export_one(self, machine_name: str, folder: Path, as_job: bool,
                    confirm: Optional[ConfirmCallback]) -> ExportOutcome:
        if confirm is not None and not confirm(machine_name, folder):
            self.notifier.info(f"Skipped export of '{machine_name}'")
            return ExportOutcome(machine_name, SKIPPED)

        try:
            self.platform.export_vm(machine_name, folder, as_job=as_job)
        except Exception as e:
            self.notifier.failure(f"Export of '{machine_name}' failed: {e}")
            return ExportOutcome(machine_name, FAILED, str(e))

        if as_job:
            self.notifier.info(f"Started background export of '{machine_name}' to {folder}")
        else:
            self.notifier.success(f"Exported '{machine_name}' to {folder}")
        return ExportOutcome(machine_name, SUCCESS)
