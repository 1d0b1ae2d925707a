"""Authentication service - business logic for user auth."""
import logging

from pymongo.errors import DuplicateKeyError

from timetracker.errors import ConflictError, NotFoundError
from timetracker.models.user import User
from timetracker.services.organization_service import OrganizationService, utcnow
from timetracker.utils.auth import create_access_token, hash_password, normalize_email, verify_password
from timetracker.utils.ids import to_object_id


logger = logging.getLogger(__name__)


class InvalidCredentials(Exception):
    """E-mail/password pair does not match a user."""


class AuthService:
    """Service for handling user authentication."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]

    def _doc_to_user(self, doc: dict) -> User:
        return User(
            _id=str(doc["_id"]),
            email=doc["email"],
            full_name=doc.get("full_name"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def register_user(self, email: str, password: str, full_name: str | None = None) -> User:
        """
        Register a new user and accept the invites waiting for the e-mail.

        Args:
            email: User email address
            password: Plain text password
            full_name: Optional display name

        Returns:
            User object (without password)

        Raises:
            ConflictError: If email is already registered
        """
        email = normalize_email(email)
        existing = await self.users.find_one({"email": email})
        if existing:
            raise ConflictError("Email already registered", code="email_taken")

        now = utcnow()
        user_doc = {
            "email": email,
            "hashed_password": hash_password(password),
            "full_name": full_name,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.users.insert_one(user_doc)
        except DuplicateKeyError:
            raise ConflictError("Email already registered", code="email_taken")
        user_doc["_id"] = result.inserted_id

        logger.info("User %s registered", result.inserted_id)
        await OrganizationService(self.db).accept_pending_invites(str(result.inserted_id), email)
        return self._doc_to_user(user_doc)

    async def login(self, email: str, password: str) -> str:
        """
        Login user and return JWT token.

        E-mails match case-insensitively. Pending invites for the e-mail are
        accepted here as well.

        Raises:
            InvalidCredentials: If credentials are invalid
        """
        email = normalize_email(email)
        user_doc = await self.users.find_one({"email": email})
        if not user_doc or not verify_password(password, user_doc["hashed_password"]):
            logger.warning("Failed login for %s", email)
            raise InvalidCredentials("Invalid email or password")

        user_id = str(user_doc["_id"])
        await OrganizationService(self.db).accept_pending_invites(user_id, user_doc["email"])
        return create_access_token(user_id=user_id, email=user_doc["email"])

    async def get_user_by_id(self, user_id: str) -> User:
        """
        Get user by ID.

        Raises:
            NotFoundError: If user not found
        """
        user_doc = await self.users.find_one({"_id": to_object_id(user_id, "User")})
        if not user_doc:
            raise NotFoundError("User not found", code="user_not_found")

        return self._doc_to_user(user_doc)
