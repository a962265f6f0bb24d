# /myhome/auth/roles.py
from enum import Enum
from types import MappingProxyType

from flask import current_app

WILDCARD_PERMISSION = 'all'


class Role(str, Enum):
    """The closed set of staff roles. Values are what is stored and sent over the wire."""
    ADMIN = 'admin'
    CAREGIVER = 'caregiver'
    DOCTOR = 'doctor'
    SUPERVISOR = 'supervisor'

    @classmethod
    def parse(cls, value):
        """Returns the Role for a wire value, or None when it is not a known role."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def values(cls):
        return [role.value for role in cls]


class PermissionRegistry:
    """
    Static role -> permission map.
    Loaded once from ``ROLE_PERMISSIONS`` when the app starts and never mutated afterwards.
    """
    extension_key = 'myhome.role_permissions'

    def __init__(self, app=None):
        if app:
            self.init_app(app)

    @staticmethod
    def build(raw_map):
        """Freezes a plain ``{role: [permission, ...]}`` mapping."""
        frozen = {}
        for role_name, permissions in (raw_map or {}).items():
            role = Role.parse(role_name)
            if role is None:
                raise ValueError(f"Unknown role '{role_name}' in ROLE_PERMISSIONS")
            frozen[role] = frozenset(permissions)
        return MappingProxyType(frozen)

    def init_app(self, app):
        app.extensions[self.extension_key] = self.build(app.config.get('ROLE_PERMISSIONS'))

    @property
    def mapping(self):
        return current_app.extensions[self.extension_key]

    def permissions_for(self, role):
        return self.mapping.get(Role.parse(role), frozenset())

    def has_permission(self, role, permission: str) -> bool:
        role = Role.parse(role)
        if role is Role.ADMIN:
            return True
        granted = self.permissions_for(role)
        return permission in granted or WILDCARD_PERMISSION in granted


permission_registry = PermissionRegistry()
