# Tokengate Services
from tokengate.services.accounts import AccountLookup, AccountRepository, AccountService
from tokengate.services.auth import AuthService, TokenPair
from tokengate.services.authenticator import AuthenticatedPrincipal, RequestAuthenticator
from tokengate.services.password import PasswordHasher
from tokengate.services.revocation import (
    InMemoryRevocationStore,
    RedisRevocationStore,
    RevocationStore,
)
from tokengate.services.tokens import SigningKeyPair, TokenCodec, TokenPayload, TokenType

__all__ = [
    "AccountLookup",
    "AccountRepository",
    "AccountService",
    "AuthService",
    "AuthenticatedPrincipal",
    "InMemoryRevocationStore",
    "PasswordHasher",
    "RedisRevocationStore",
    "RequestAuthenticator",
    "RevocationStore",
    "SigningKeyPair",
    "TokenCodec",
    "TokenPair",
    "TokenPayload",
    "TokenType",
]
