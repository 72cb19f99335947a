"""
DocFlow data models.

``db`` is the single Flask-SQLAlchemy handle shared by every model module
and by the service layer.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
