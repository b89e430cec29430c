"""
Workflow Configuration Studio
Database models package.

``db`` is the shared Flask-SQLAlchemy handle; model modules import it
from here and the app factory binds it with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
