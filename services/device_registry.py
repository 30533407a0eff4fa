from core.errors import AuthError, AuthErrorKind
from models.auth_tokens import AuthToken, TokenType
from schemas.auth_schemas import DeviceInfo
from services.token_store import TokenStore
from utils.devices import UNKNOWN_DEVICE
from utils.timeutils import ensure_utc
from utils.logger import get_logger

logger = get_logger(__name__)


class DeviceRegistry:
    """
    Active sessions ("devices") of a user, derived from live refresh tokens.
    A device id is the id of its current refresh token.
    """

    def __init__(self, store: TokenStore):
        self.store = store

    @staticmethod
    def _to_device(token: AuthToken) -> DeviceInfo:
        created_at = ensure_utc(token.created_at)
        return DeviceInfo(
            id=token.id,
            device_name=token.device_name or UNKNOWN_DEVICE,
            login_date=ensure_utc(token.session_started_at) or created_at,
            last_activity=created_at,
        )

    def active_devices(self, user_id: int) -> list[DeviceInfo]:
        tokens = self.store.active_tokens(user_id, TokenType.REFRESH)
        devices = [self._to_device(token) for token in tokens]
        return sorted(devices, key=lambda d: d.last_activity, reverse=True)

    def count_active(self, user_id: int) -> int:
        return self.store.count_active(user_id, TokenType.REFRESH)

    def revoke_device(self, user_id: int, device_id: str, revoked_by: str) -> None:
        """
        Revoke a device's refresh token and every other token of its session,
        including access tokens from before its latest rotation. Does not commit.

        Raises:
            AuthError(NOT_FOUND): No active device with that id for this user
        """
        revoked = self.store.revoke_if_valid(
            device_id, revoked_by, user_id=user_id, token_type=TokenType.REFRESH
        )
        if not revoked:
            logger.warning(
                "Device to revoke not found or no longer active",
                extra={"user_id": user_id, "device_id": device_id}
            )
            raise AuthError(AuthErrorKind.NOT_FOUND, "Device not found or no longer active",
                            device_id=device_id)

        token = self.store.get_by_id(device_id)
        self.store.revoke_session(token.session_id or device_id, revoked_by)

        logger.info(
            "Device revoked",
            extra={"user_id": user_id, "device_id": device_id, "revoked_by": revoked_by}
        )
