"""
VMRotate - Rotating virtual machine export backups

Exports virtual machines into dated Weekly/Monthly folders, keeps a fixed
number of folders per class and restores the newest export of a machine.
"""

__version__ = "0.1.0"

from .rotation import RotationManager, RotationResult, ExportOutcome
from .locator import BackupLocator, BackupFolderRef, ImportResult
from .platforms import VMPlatform, HyperVPlatform, VirtualBoxPlatform, get_platform
from .config import Config

__all__ = [
    "RotationManager",
    "RotationResult",
    "ExportOutcome",
    "BackupLocator",
    "BackupFolderRef",
    "ImportResult",
    "VMPlatform",
    "HyperVPlatform",
    "VirtualBoxPlatform",
    "get_platform",
    "Config"
]
