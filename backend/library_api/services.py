"""Business logic services used by HTTP controllers.

Services are intentionally thin: they coordinate repositories and the
token service and leave persistence rules to the repositories.
"""

import logging

from passlib.context import CryptContext

from . import repositories
from .tokens import TokenService

logger = logging.getLogger("library_api.auth")


def make_password_context(rounds: int = 29000) -> CryptContext:
    """Return the one-way hashing scheme used for student credentials.

    `rounds` is the pbkdf2 cost parameter; raising it slows both hashing
    and brute-force attempts.
    """
    return CryptContext(
        schemes=["pbkdf2_sha256"],
        deprecated="auto",
        pbkdf2_sha256__rounds=rounds,
    )


class AuthService:
    """Student registration and login."""
    def __init__(self, students: repositories.StudentRepository, tokens: TokenService):
        self.students = students
        self.tokens = tokens

    def register(self, fields: dict, password: str) -> dict:
        """Create a student with a hashed credential and return the stored record."""
        return self.students.register_with_credential(fields, password)

    def login(self, admission_number: str, password: str) -> str:
        """Verify credentials and return a signed access token.

        Raises `InvalidCredentialsError` when the admission number is unknown
        or the password does not match.
        """
        student = self.students.authenticate(admission_number, password)
        token = self.tokens.issue(student["admissionNumber"])
        logger.info("login_succeeded admission_number=%s", admission_number)
        return token
