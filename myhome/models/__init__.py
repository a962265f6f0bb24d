from myhome.models.user_models import User, UserProfile
from myhome.models.facility_models import Facility
from myhome.models.system_models import AuditLog, PasswordResetToken

__all__ = ['User', 'UserProfile', 'Facility', 'AuditLog', 'PasswordResetToken']
