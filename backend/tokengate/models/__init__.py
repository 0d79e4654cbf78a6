# Tokengate Models
from tokengate.models.account import Account, AccountPasswordHash
from tokengate.models.base import BaseModel

__all__ = [
    "Account",
    "AccountPasswordHash",
    "BaseModel",
]
