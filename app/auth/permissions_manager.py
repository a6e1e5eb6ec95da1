"""Permissions Management"""
import logging
import yaml
from pathlib import Path
from typing import Dict, List, Optional

from app.config import PERMISSIONS_FILE

logger = logging.getLogger(__name__)


class PermissionsManager:
    """Manages role-to-permissions mapping from permissions.yml"""

    def __init__(self, permissions_file_path: Optional[str] = None):
        self.role_permissions = self._load_permissions(Path(permissions_file_path or PERMISSIONS_FILE))

    def _load_permissions(self, file_path: Path) -> Dict[str, List[str]]:
        """Load role-to-permissions mapping from YAML file"""
        try:
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f) or {}
                return data.get('roles', {})
        except OSError as e:
            logger.error(f"Could not load permissions from {file_path}: {e}")
            return {}

    def get_permissions_for_roles(self, roles: List[str]) -> List[str]:
        """Convert list of roles to list of permissions"""
        permissions = set()
        for role in roles:
            permissions.update(self.role_permissions.get(role, []))
        return sorted(permissions)
