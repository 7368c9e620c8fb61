"""
extensions.py — Flask extension singletons.

SQLAlchemy and marshmallow are created here with no app attached and bound
inside the app factory via init_app(), so separate test apps can be built:

    from splitbook.app.extensions import db, ma
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Request schemas in app/schemas/ subclass marshmallow.Schema directly, not
# ma.Schema: ma.Schema needs an app context and the unit tests run without one.
ma = Marshmallow()
