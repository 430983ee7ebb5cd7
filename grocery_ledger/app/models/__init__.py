"""
Importing this package registers every model on db.metadata, so relationship
targets resolve and db.create_all() sees all tables.
"""

from grocery_ledger.app.models import (  # noqa: F401
    expense,
    friend,
    grocery_item,
    group,
    notification,
    share,
    user,
)
