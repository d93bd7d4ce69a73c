"""
Shared SQLAlchemy handle.

Every model module imports ``db`` from here; ``create_app`` binds it to the
Flask application and imports the model modules so ``db.create_all()`` sees
every table.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
