# DISCLAIMER: THIS IS NOT REAL DATA. ALL ACCOUNTS IN THIS FILE ARE FICTITIOUS AND INTENDED FOR THE ROLE PICKER SIGN-IN ONLY.
import logging
import secrets
import uuid

from flask_security.utils import hash_password

from kioskinstall.extensions import db
from kioskinstall.models.role import Role
from kioskinstall.models.user import User

logger = logging.getLogger(__name__)

AVATAR_URL = "https://ui-avatars.com/api/?name={name}&background=random"

ROLES = (
    ('admin', 'Installation program administrator'),
    ('field_user', 'Field technician'),
)

ACCOUNTS = (
    {'account_id': 'admin_001', 'name': 'Admin User', 'email': 'admin@kioskpro.com', 'role': 'admin'},
    {'account_id': 'field_001', 'name': 'Field Technician', 'email': 'tech@kioskpro.com', 'role': 'field_user'},
)


# Helper: get or create
def get_or_create(model, defaults=None, **kwargs):
    instance = model.query.filter_by(**kwargs).first()
    if instance:
        return instance
    params = dict(kwargs)
    if defaults:
        params.update(defaults)
    instance = model(**params)
    db.session.add(instance)
    db.session.commit()
    return instance


def seed_accounts():
    """Create the kiosk roles and one account per role. Safe to run repeatedly."""
    roles = {
        name: get_or_create(Role, name=name, defaults={'description': description})
        for name, description in ROLES
    }

    for account in ACCOUNTS:
        user = get_or_create(User, email=account['email'], defaults={
            'account_id': account['account_id'],
            'name': account['name'],
            'avatar_url': AVATAR_URL.format(name=account['name'].replace(' ', '+')),
            # Accounts are reached through the role picker, never by password
            'password': hash_password(secrets.token_urlsafe(32)),
            'active': True,
            'fs_uniquifier': str(uuid.uuid4()),
        })
        role = roles[account['role']]
        if role not in user.roles:
            user.roles.append(role)

    db.session.commit()
    logger.info(f"Seeded {len(ROLES)} roles and {len(ACCOUNTS)} accounts")


if __name__ == '__main__':
    from kioskinstall.server import create_app

    app = create_app()
    with app.app_context():
        db.create_all()
        seed_accounts()
        print("Seed completed")
