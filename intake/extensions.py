"""
Flask extension instances, bound to the app in intake.create_app().

Kept in their own module so models, blueprints and services can import `db`
without importing the app factory.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
login_manager.session_protection = "basic"
csrf = CSRFProtect()
