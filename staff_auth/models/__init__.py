from staff_auth.models.tenant import Tenant
from staff_auth.models.staff_user import STAFF_ROLES, StaffUser
from staff_auth.models.auth_session import AuthSession
from staff_auth.models.password_reset_token import PasswordResetToken
from staff_auth.models.auth_audit_log import AuthAuditLog
