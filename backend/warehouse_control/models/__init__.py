from .auth import Role, User
from .inventory import Item, ItemHistory, HistoryAction

__all__ = [
    'Role', 'User',
    'Item', 'ItemHistory', 'HistoryAction',
]
