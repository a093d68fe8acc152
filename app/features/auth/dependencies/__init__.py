from app.features.auth.dependencies.auth import get_account_service, get_current_user_id

__all__ = ["get_account_service", "get_current_user_id"]
