"""Utility functions and notification system for VMRotate."""

import os
import sys
import shutil
import logging
from pathlib import Path
from typing import Union

from .naming import stamp_in


class NotificationManager:
    """Console and file logging for rotation runs."""
    
    ASCII_PREFIXES = {
        "✅": "[SUCCESS]",
        "❌": "[FAILED]",
    }
    
    def __init__(self, config):
        """Initialize notification manager.
        
        Args:
            config: Configuration object
        """
        self.config = config
        self.logger = self._setup_logger()
        self.use_unicode = self._check_unicode_support()
    
    def _check_unicode_support(self) -> bool:
        """Check if the terminal can print the status prefixes."""
        try:
            "✅❌".encode(sys.stdout.encoding or 'utf-8')
            return True
        except (UnicodeEncodeError, LookupError):
            return False
    
    def _setup_logger(self) -> logging.Logger:
        """Setup logging configuration."""
        logger = logging.getLogger('vmrotate')
        logger.handlers.clear()
        
        level = getattr(logging, str(self.config.get('notifications.level', 'INFO')).upper(), logging.INFO)
        logger.setLevel(level)
        
        if self.config.get('notifications.console', True):
            console_handler = logging.StreamHandler(sys.stdout)
            
            # Windows consoles default to a legacy code page
            if hasattr(console_handler.stream, 'reconfigure'):
                try:
                    console_handler.stream.reconfigure(encoding='utf-8', errors='replace')
                except (AttributeError, OSError, ValueError):
                    pass
            
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(levelname)s - %(message)s'
            ))
            logger.addHandler(console_handler)
        
        log_file = self.config.get('notifications.file')
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
            logger.addHandler(file_handler)
        
        return logger
    
    def _format_message(self, message: str, prefix: str) -> str:
        if self.use_unicode:
            return f"{prefix} {message}"
        return f"{self.ASCII_PREFIXES.get(prefix, prefix)} {message}"
    
    def debug(self, message: str) -> None:
        self.logger.debug(message)
    
    def info(self, message: str) -> None:
        self.logger.info(message)
    
    def warning(self, message: str) -> None:
        self.logger.warning(message)
    
    def error(self, message: str) -> None:
        self.logger.error(message)
    
    def success(self, message: str) -> None:
        """Log a completed step."""
        self.logger.info(self._format_message(message, "✅"))
    
    def failure(self, message: str) -> None:
        """Log a failed step."""
        self.logger.error(self._format_message(message, "❌"))


def folder_creation_time(path: Union[str, Path]) -> float:
    """Get the creation time of a folder.
    
    Uses the birth time where the platform records one (Windows, macOS, BSD).
    Elsewhere ``st_ctime`` moves whenever the folder's entries change, so the
    ``YYYY_MM_DD_HHMM`` stamp in the folder name is used instead, and
    ``st_ctime`` only for names without a stamp.

    Args:
        path: Folder path

    Returns:
        POSIX timestamp
    """
    stat = os.stat(path)
    birthtime = getattr(stat, 'st_birthtime', None)
    if birthtime is not None:
        return birthtime

    stamped = stamp_in(Path(path).name)
    if stamped is not None:
        return stamped.timestamp()
    return stat.st_ctime


def ensure_directory(path: Union[str, Path]) -> Path:
    """Ensure directory exists, create if it doesn't.
    
    Args:
        path: Directory path
        
    Returns:
        Path object
    """
    path_obj = Path(path)
    path_obj.mkdir(parents=True, exist_ok=True)
    return path_obj


def is_command_available(command: str) -> bool:
    """Check if a command is available in the system PATH."""
    return shutil.which(command) is not None
