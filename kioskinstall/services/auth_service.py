import logging
from typing import Optional, Tuple

from flask_security import logout_user

from kioskinstall.domain.user import SessionUser, UserRole
from kioskinstall.models.role import Role
from kioskinstall.models.user import User

logger = logging.getLogger(__name__)

ROLE_NAMES = {
    UserRole.ADMIN: 'admin',
    UserRole.FIELD_USER: 'field_user',
}
ROLES_BY_NAME = {name: role for role, name in ROLE_NAMES.items()}


class AuthError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthService:
    """
    Session boundary for the API.

    Sign-in is a role picker: it selects the provisioned account for the
    role and issues a Flask-Security auth token for it. Callers only see
    the token and the session user.
    """

    def __init__(self, project_store, mock_login_enabled: bool = True):
        self.project_store = project_store
        self.mock_login_enabled = mock_login_enabled

    @staticmethod
    def session_user_for(user: User) -> SessionUser:
        role = ROLES_BY_NAME.get(user.primary_role)
        if role is None:
            raise AuthError(f"Account {user.email} has no kiosk role", 403)
        return SessionUser(
            id=user.account_id,
            name=user.name or user.email,
            email=user.email,
            role=role,
            avatar_url=user.avatar_url,
        )

    @staticmethod
    def find_account(role: UserRole) -> Optional[User]:
        return (
            User.query
            .join(User.roles)
            .filter(Role.name == ROLE_NAMES[role], User.active.is_(True))
            .order_by(User.id)
            .first()
        )

    def mock_login(self, role: UserRole) -> Tuple[str, SessionUser]:
        if not self.mock_login_enabled:
            raise AuthError("Role sign-in is disabled", 403)
        user = self.find_account(role)
        if user is None:
            raise AuthError(f"No account provisioned for role {role.value}", 404)

        token = user.get_auth_token()
        session_user = self.session_user_for(user)
        self.project_store.set_current_user(session_user)
        logger.info(f"Signed in {session_user.email} as {session_user.role.value}")
        return token, session_user

    def logout(self):
        current = self.project_store.get_current_user()
        self.project_store.set_current_user(None)
        logout_user()
        if current:
            logger.info(f"Signed out {current.email}")

    def current_session_user(self) -> Optional[SessionUser]:
        return self.project_store.get_current_user()
