from carwithdriver.extensions import db
from flask_security import RoleMixin

roles_users = db.Table(
    'roles_users',
    db.Column('user_id', db.Integer(), db.ForeignKey('user.id')),
    db.Column('role_id', db.Integer(), db.ForeignKey('role.id'))
)


class Role(db.Model, RoleMixin):
    __tablename__ = 'role'
    id = db.Column(db.Integer(), primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)  # admin, driver, traveler
    description = db.Column(db.String(255))


class RoleName:
    ADMIN = 'admin'
    DRIVER = 'driver'
    TRAVELER = 'traveler'

    ALL = [ADMIN, DRIVER, TRAVELER]
