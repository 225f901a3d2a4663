from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from navhub.services.throttle import MemoryLoginThrottle


db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
login_throttle = MemoryLoginThrottle()
