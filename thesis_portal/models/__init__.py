"""
SQLAlchemy extension handle shared by every model and service.

The handle is created here, bound to the Flask app in ``create_app`` and
closed with the app context; nothing else holds a connection.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
