from app.features.auth.services.auth_service import AccountService
from app.features.auth.services.credential_store import CredentialStore

__all__ = ["AccountService", "CredentialStore"]
