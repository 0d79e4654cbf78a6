"""Exception hierarchy for authentication, tokens and accounts.

Services raise these; only the API layer and the bearer middleware translate
them into HTTP responses. Token verification failures all derive from
InvalidAccessTokenError so callers can treat them as one outcome, while the
subclasses keep the precise cause available for logs and tests.
"""


class AuthError(Exception):
    """Base authentication error."""

    message = "authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


# --- Credential errors (never distinguished in HTTP responses) ---


class CredentialError(AuthError):
    """Login credentials were rejected."""

    message = "invalid credentials"


class EmailAddressNotFoundError(CredentialError):
    message = "email address not found"


class AccountNotActiveError(CredentialError):
    message = "account is not active"


class AccountPasswordHashMissingError(CredentialError):
    message = "account password hash is missing"


class IncorrectPasswordError(CredentialError):
    message = "incorrect password"


# --- Token errors ---


class TokenError(AuthError):
    """Bearer or body token was rejected."""

    message = "invalid token"


class InvalidAccessTokenError(TokenError):
    """A token failed verification or is no longer honored."""

    message = "invalid access token"


class TokenDecodeError(InvalidAccessTokenError):
    """Signature check or structural decoding failed."""

    message = "failed to parse token"


class TokenNotYetValidError(InvalidAccessTokenError):
    message = "token is not valid yet"


class TokenExpiredError(InvalidAccessTokenError):
    message = "token has expired"


class MissingClaimError(InvalidAccessTokenError):
    """A required claim is absent from a correctly signed token."""

    def __init__(self, claim: str):
        self.claim = claim
        super().__init__(f"failed to get '{claim}'")


class MalformedClaimError(InvalidAccessTokenError):
    """A claim is present but cannot be parsed into its expected type."""

    def __init__(self, claim: str, value: object = None):
        self.claim = claim
        self.value = value
        super().__init__(f"failed to parse '{claim}'")


class InvalidTokenTypeError(TokenError):
    message = "invalid token type"


class InvalidAccessTokenInBodyError(TokenError):
    message = "invalid access token in body, maybe your token has expired"


class InvalidRefreshTokenInBodyError(TokenError):
    message = "invalid refresh token in body, maybe your token has expired"


class MissingAuthorizationHeaderError(TokenError):
    message = "authorization header missing"


# --- Input errors (detail is returned to the caller) ---


class InputError(AuthError):
    message = "your request is invalid"

    def __init__(self, message: str | None = None, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidDeviceIdError(InputError):
    message = "invalid device ID"

    def __init__(self, message: str | None = None):
        super().__init__(message, field="device_id")


# --- Account management errors ---


class AccountError(Exception):
    """Base account management error."""

    message = "account error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class EmailAlreadyExistsError(AccountError):
    message = "email already exists"


class AccountNotFoundError(AccountError):
    message = "account not found"


class WrongOldPasswordError(AccountError):
    message = "wrong old password"


# --- Password hashing errors ---


class PasswordHashError(Exception):
    """Base password hashing error."""


class InvalidSaltLengthError(PasswordHashError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"salt length is incorrect: expected {expected} bytes, got {actual} bytes")


class InvalidEncodedHashError(PasswordHashError):
    pass


class IncompatibleArgon2VersionError(PasswordHashError):
    pass


# --- Infrastructure / key errors ---


class RevocationStoreError(Exception):
    """The revocation cache could not be read or written."""


class InvalidKeyError(Exception):
    """Raised when the configured signing key is unusable."""
