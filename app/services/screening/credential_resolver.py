"""Owner-scoped screening provider credentials."""

from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.screening_domain import ScreeningCredentials
from app.repositories.screening_repository import ScreeningRepository, screening_repository
from app.services.infrastructure.encryption_service import EncryptionError, decrypt_credentials

logger = get_logger(__name__)


class CredentialResolver:
    """
    Fetch and decrypt one owner's provider login.

    An owner who never configured the integration, or whose row cannot be
    read or decrypted, resolves to None so the caller can skip them.
    """

    def __init__(self, repository: ScreeningRepository | None = None):
        self.repository = repository or screening_repository

    async def resolve(self, owner_id: str) -> ScreeningCredentials | None:
        try:
            record = await self.repository.get_owner_credentials(owner_id)
        except DatabaseError as e:
            logger.error(
                "Failed to load screening credentials",
                owner_id=owner_id,
                error=str(e),
                operation=e.operation,
            )
            return None

        if record is None or not record.is_complete:
            logger.debug(
                "No usable screening credentials for owner",
                owner_id=owner_id,
                row_present=record is not None,
            )
            return None

        try:
            username, password = decrypt_credentials(
                record.encrypted_username,
                record.encrypted_password,
                record.encryption_iv,
            )
        except EncryptionError as e:
            logger.error("Failed to decrypt screening credentials", owner_id=owner_id, error=str(e))
            return None

        return ScreeningCredentials(username=username, password=password)
