"""Configuration management for VMRotate."""

import os
import copy
import yaml
from typing import Dict, Any, Optional, List


DEFAULT_CONFIG = {
    'backup': {
        'root': './vm-backups',
        'classes': ['Weekly', 'Monthly'],
        'retention': {
            'count': 2,
            'per_class': {},
        },
    },
    'vm': {
        'platform': 'hyperv',
        'background_job': False,
        'timeout': None,
    },
    'notifications': {
        'level': 'INFO',
        'console': True,
        'file': None,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into ``base`` recursively, returning ``base``."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class Config:
    """Configuration manager for VMRotate."""
    
    ENV_MAPPINGS = {
        'VMROTATE_BACKUP_ROOT': ['backup', 'root'],
        'VMROTATE_RETENTION_COUNT': ['backup', 'retention', 'count'],
        'VMROTATE_VM_PLATFORM': ['vm', 'platform'],
        'VMROTATE_VM_TIMEOUT': ['vm', 'timeout'],
        'VMROTATE_LOG_LEVEL': ['notifications', 'level'],
    }
    
    INT_KEYS = ('count', 'timeout')
    
    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration.
        
        Args:
            config_path: Path to custom configuration file
        """
        self.config_path = config_path
        self._config = self._load_config()
    
    def _load_config(self) -> Dict[str, Any]:
        """Load defaults, then the YAML file, then environment overrides."""
        config = copy.deepcopy(DEFAULT_CONFIG)
        
        if self.config_path and os.path.exists(self.config_path):
            with open(self.config_path, 'r', encoding='utf-8') as f:
                custom_config = yaml.safe_load(f) or {}
            if not isinstance(custom_config, dict):
                raise ValueError(f"Configuration file must contain a mapping: {self.config_path}")
            _deep_merge(config, custom_config)
        
        return self._apply_env_overrides(config)
    
    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        # Example: VMROTATE_BACKUP_ROOT overrides backup.root
        for env_var, config_path in self.ENV_MAPPINGS.items():
            if env_var not in os.environ:
                continue
            
            value = os.environ[env_var]
            if config_path[-1] in self.INT_KEYS:
                value = int(value)
            
            current = config
            for key in config_path[:-1]:
                current = current.setdefault(key, {})
            current[config_path[-1]] = value
        
        return config
    
    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.
        
        Args:
            key: Configuration key in dot notation (e.g., 'backup.root')
            default: Default value if key not found
            
        Returns:
            Configuration value
        """
        value = self._config
        
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        
        return value
    
    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key.split('.')
        current = self._config
        
        for k in keys[:-1]:
            current = current.setdefault(k, {})
        
        current[keys[-1]] = value
    
    def save(self, path: str) -> None:
        """Save current configuration to a YAML file."""
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self._config, f, default_flow_style=False, indent=2)
    
    @property
    def backup_root(self) -> str:
        return self.get('backup.root', './vm-backups')
    
    @property
    def backup_classes(self) -> List[str]:
        return list(self.get('backup.classes', ['Weekly', 'Monthly']))
    
    @property
    def retention_count(self) -> int:
        """Default number of folders kept per class."""
        return int(self.get('backup.retention.count', 2))
    
    def retention_for(self, backup_class: str) -> int:
        """Get the retention count for one class, falling back to the default."""
        per_class = self.get('backup.retention.per_class') or {}
        return int(per_class.get(backup_class, self.retention_count))
    
    @property
    def vm_platform(self) -> str:
        return self.get('vm.platform', 'hyperv')
    
    @property
    def background_job(self) -> bool:
        return bool(self.get('vm.background_job', False))
    
    @property
    def vm_timeout(self) -> Optional[int]:
        """Platform command timeout in seconds, None to wait indefinitely."""
        timeout = self.get('vm.timeout')
        return int(timeout) if timeout else None
