from myhome.auth.gates import current_facility_scope
from myhome.errors import ResourceNotFound
from myhome.extensions import db
from myhome.models.facility_models import Facility
from myhome.utils.responses import envelope


def get_accessible_facilities():
    query = current_facility_scope().apply(Facility.query.filter_by(is_active=True), Facility.id)
    facilities = query.order_by(Facility.name).all()
    return envelope(data={
        'facilities': [facility.to_dict() for facility in facilities],
        'scope': current_facility_scope().to_dict(),
    })


def get_facility(facility_id):
    facility = db.session.get(Facility, facility_id)
    if facility is None or not facility.is_active:
        raise ResourceNotFound('Facility not found')
    return envelope(data={'facility': facility.to_dict()})
