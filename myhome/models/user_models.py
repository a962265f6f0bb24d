from myhome.extensions import db
from myhome.auth.roles import Role
from myhome.utils.time_util import utcnow


class User(db.Model):
    """Staff identity: credentials, role, facility association and lockout state."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    # Always stored lower-cased; see normalize_email
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.CAREGIVER.value)
    facility_id = db.Column(db.Integer, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)

    # Lockout tracking
    failed_login_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime)
    last_login = db.Column(db.DateTime)

    password_changed_at = db.Column(db.DateTime, default=utcnow)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # --- Relationships ---
    profile = db.relationship('UserProfile', back_populates='user', uselist=False, cascade="all, delete-orphan")
    audit_logs = db.relationship('AuditLog', backref='user', lazy='dynamic')
    reset_tokens = db.relationship('PasswordResetToken', back_populates='user', lazy='dynamic')

    @staticmethod
    def normalize_email(email: str) -> str:
        return (email or '').strip().lower()

    @classmethod
    def find_by_email(cls, email: str, for_update: bool = False):
        query = cls.query.filter(cls.email == cls.normalize_email(email))
        if for_update:
            query = query.with_for_update()
        return query.first()

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def to_dict(self):
        """Serializes the User object to a dictionary for API responses."""
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'facilityId': self.facility_id,
            'isActive': self.is_active,
            'emailVerified': self.email_verified,
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


class UserProfile(db.Model):
    """Contact details kept apart from the credential record."""
    __tablename__ = 'user_profiles'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True)
    phone = db.Column(db.String(50))
    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    country = db.Column(db.String(100))
    postal_code = db.Column(db.String(20))
    date_of_birth = db.Column(db.Date)
    bio = db.Column(db.Text)
    avatar_url = db.Column(db.String(1024))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship('User', back_populates='profile')

    def to_dict(self):
        return {
            'phone': self.phone,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'country': self.country,
            'postalCode': self.postal_code,
            'dateOfBirth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'bio': self.bio,
            'avatarUrl': self.avatar_url,
        }
