from kioskinstall.extensions import db
from flask_security import UserMixin
from .role import roles_users

class User(db.Model, UserMixin):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    # Public identifier used in project records (e.g. "field_001")
    account_id = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    active = db.Column(db.Boolean(), default=True)
    fs_uniquifier = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    roles = db.relationship('Role', secondary=roles_users, backref=db.backref('users', lazy='dynamic'))

    @property
    def primary_role(self):
        """Admin wins over field user when an account holds both."""
        names = {role.name for role in self.roles}
        if 'admin' in names:
            return 'admin'
        if 'field_user' in names:
            return 'field_user'
        return None
