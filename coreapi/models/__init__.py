"""
Core REST API
SQLAlchemy extension handle shared by every model.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
