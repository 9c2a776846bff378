"""Exception types raised by VMRotate."""


class VMRotateError(Exception):
    """Base class for all VMRotate errors."""


class EnumerationError(VMRotateError):
    """The backup root could not be listed."""


class FolderCreationError(VMRotateError):
    """The new rotation folder could not be created."""


class DeletionError(VMRotateError):
    """The oldest backup folder could not be removed."""


class ExportError(VMRotateError):
    """A virtual machine export failed."""


class BackupNotFoundError(VMRotateError):
    """No backup exists for the requested virtual machine."""


class ConfigNotFoundError(VMRotateError):
    """No usable configuration descriptor inside a backup."""


class ImportFailedError(VMRotateError):
    """The platform refused to import a backup."""


class VMListError(VMRotateError):
    """The platform could not list its virtual machines."""
