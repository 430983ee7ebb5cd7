"""
extensions.py — Flask extension singletons.

Created here without an app and bound inside the factory via init_app(app),
so they can be imported anywhere without circular imports:

    from grocery_ledger.app.extensions import db, ma

Schema inheritance rule:
  Request validation schemas (app/schemas/*_schema.py) inherit from
  marshmallow.Schema directly so unit tests can load them without an app.
  Only response schemas, which are dumped inside a request, use ma.Schema.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
ma = Marshmallow()
