# /myhome/auth/facility_scope.py
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy import false

from myhome.auth.roles import Role

logger = logging.getLogger(__name__)

FALLBACK_ALLOW = 'allow'
FALLBACK_DENY = 'deny'


@dataclass(frozen=True)
class FacilityScope:
    """
    Which facility's records a principal may see.

    ``unrestricted`` scopes see everything. Restricted scopes see one
    facility, or nothing at all when ``facility_id`` is None (the deny
    fallback for a principal without a facility).
    """
    unrestricted: bool
    facility_id: Optional[int] = None

    @classmethod
    def everything(cls):
        return cls(unrestricted=True)

    @classmethod
    def restricted_to(cls, facility_id):
        return cls(unrestricted=False, facility_id=facility_id)

    @classmethod
    def nothing(cls):
        return cls(unrestricted=False, facility_id=None)

    def allows(self, facility_id) -> bool:
        if self.unrestricted:
            return True
        return self.facility_id is not None and facility_id == self.facility_id

    def apply(self, query, column):
        """Adds the visibility predicate to a SQLAlchemy query on ``column``."""
        if self.unrestricted:
            return query
        if self.facility_id is None:
            return query.filter(false())
        return query.filter(column == self.facility_id)

    def to_dict(self):
        return {'unrestricted': self.unrestricted, 'facilityId': self.facility_id}


def _owned_facility_ids(user_id) -> List[int]:
    from myhome.models.facility_models import Facility

    return [facility.id for facility in Facility.owned_by(user_id)]


def resolve_facility_scope(principal, fallback: str = FALLBACK_ALLOW,
                           owned_facilities: Callable[[int], List[int]] = _owned_facility_ids) -> FacilityScope:
    """
    Derives the scope for an authenticated principal.

    - admin: unrestricted.
    - supervisor: their own facility, else the facility they own.
    - doctor, caregiver: their own facility.
    Anyone left without a facility gets the configured fallback.
    """
    role = Role.parse(principal.role)

    if role is Role.ADMIN:
        return FacilityScope.everything()

    if principal.facility_id is not None:
        return FacilityScope.restricted_to(principal.facility_id)

    if role is Role.SUPERVISOR:
        owned = owned_facilities(principal.id)
        if owned:
            if len(owned) > 1:
                logger.warning(
                    f"Supervisor {principal.id} owns {len(owned)} facilities; scoping to facility {owned[0]}"
                )
            return FacilityScope.restricted_to(owned[0])

    logger.warning(
        f"No facility for user {principal.id} (role={principal.role}); applying '{fallback}' fallback"
    )
    if fallback == FALLBACK_DENY:
        return FacilityScope.nothing()
    return FacilityScope.everything()
