"""
Default module permissions per staff role.

These only seed the permission grid when a staff member is created or their
role changes; enforcement happens elsewhere.
"""

from collections import namedtuple
from types import MappingProxyType

Permission = namedtuple('Permission', ['module', 'create', 'read', 'update', 'delete'])

MODULES = (
    'Rooms',
    'Guests',
    'Bookings',
    'Restaurant',
    'Laundry',
    'Events',
    'Gym',
    'Pool',
    'Reports',
)

SUPER_ADMIN = 'super-admin'

ROLE_LABELS = MappingProxyType({
    SUPER_ADMIN: 'Super Admin',
    'sub-admin': 'Hotel Admin',
    'manager': 'Manager',
    'receptionist': 'Receptionist',
    'gym-head': 'Gym Head',
    'laundry-staff': 'Laundry Staff',
    'event-manager': 'Event Manager',
    'restaurant-staff': 'Restaurant Staff',
    'store-keeper': 'Store Keeper',
})

# Roles that can be assigned to hotel staff.
ROLE_CHOICES = tuple((key, label) for key, label in ROLE_LABELS.items() if key != SUPER_ADMIN)


def _uniform(create, read, update, delete):
    return tuple(Permission(module, create, read, update, delete) for module in MODULES)


def _table(rows):
    return tuple(Permission(module, *flags) for module, flags in zip(MODULES, rows))


DEFAULT_PERMISSIONS = _uniform(False, True, False, False)

ROLE_PERMISSION_DEFAULTS = MappingProxyType({
    'sub-admin': _uniform(True, True, True, True),
    'manager': _uniform(True, True, True, False),
    'receptionist': _table([
        (False, True, True, False),    # Rooms
        (True, True, True, False),     # Guests
        (True, True, True, False),     # Bookings
        (False, True, False, False),   # Restaurant
        (False, True, False, False),   # Laundry
        (False, True, False, False),   # Events
        (False, True, False, False),   # Gym
        (False, True, False, False),   # Pool
        (False, False, False, False),  # Reports
    ]),
    'gym-head': _table([
        (False, False, False, False),
        (False, True, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (True, True, True, True),
        (False, True, False, False),
        (False, True, False, False),
    ]),
    'laundry-staff': _table([
        (False, True, False, False),
        (False, True, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (True, True, True, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
    ]),
    'event-manager': _table([
        (False, True, False, False),
        (False, True, False, False),
        (False, True, False, False),
        (False, True, False, False),
        (False, False, False, False),
        (True, True, True, True),
        (False, False, False, False),
        (False, False, False, False),
        (False, True, False, False),
    ]),
    'restaurant-staff': _table([
        (False, True, False, False),
        (False, True, False, False),
        (False, False, False, False),
        (True, True, True, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
        (False, False, False, False),
    ]),
    'store-keeper': _uniform(False, True, False, False),
})


def get_role_permissions(role):
    """Permission defaults for ``role``; unknown roles get read-only access."""
    return ROLE_PERMISSION_DEFAULTS.get(role, DEFAULT_PERMISSIONS)


def permissions_as_dicts(permissions):
    return [dict(permission._asdict()) for permission in permissions]


def get_role_label(role):
    return ROLE_LABELS.get(role, role)
