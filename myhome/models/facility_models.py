from myhome.extensions import db
from myhome.utils.time_util import utcnow


class Facility(db.Model):
    """Care facility. Only the fields the authorization boundary needs plus basic contact data."""
    __tablename__ = 'facilities'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text)
    phone = db.Column(db.String(50))
    email = db.Column(db.String(255))
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), index=True)
    license_number = db.Column(db.String(100))
    capacity = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), nullable=False, default='pending')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    owner = db.relationship('User', foreign_keys=[owner_id])

    @classmethod
    def get_active(cls, facility_id):
        if facility_id is None:
            return None
        return cls.query.filter_by(id=facility_id, is_active=True).first()

    @classmethod
    def owned_by(cls, user_id):
        return cls.query.filter_by(owner_id=user_id, is_active=True).order_by(cls.id).all()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'phone': self.phone,
            'email': self.email,
            'ownerId': self.owner_id,
            'licenseNumber': self.license_number,
            'capacity': self.capacity,
            'status': self.status,
            'isActive': self.is_active,
        }
