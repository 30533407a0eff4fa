from sqlalchemy.orm import Session
from core.config import SessionPolicy
from core.errors import AuthError, AuthErrorKind
from models.auth_tokens import TokenType
from models.users import User
from schemas.auth_schemas import AuthResponse, DeviceInfo, LoginRequest, LogoutRequest, UserResponse
from services.credential_verifier import CredentialVerifier
from services.device_registry import DeviceRegistry
from services.token_issuer import IssuedToken, TokenIssuer
from services.token_store import TokenStore
from utils.devices import extract_device_name
from utils.signing import JwtSigner
from utils.timeutils import utcnow
from utils.logger import get_logger, mask_token

logger = get_logger(__name__)

LOGIN_EVICTION = "login-eviction"
LOGOUT = "logout"
LOGOUT_ALL = "logout-all"
DEVICE_REVOKED = "device-revoked"


class SessionManager:
    """
    Login, refresh, logout, validation, admin revocation and cleanup.

    Login is a two-call protocol when the user is at the device limit: the
    first call fails with DEVICE_LIMIT_EXCEEDED and lists the active devices;
    the caller repeats the login with `device_id_to_revoke` to evict one of
    them. Credentials are checked on both calls.

    The limit check and the insert that follows are not serialized, so
    concurrent logins of one user can briefly exceed the limit by the number
    of racing requests minus one.
    """

    def __init__(self, db: Session, policy: SessionPolicy, signer: JwtSigner):
        self.policy = policy
        self.store = TokenStore(db)
        self.credentials = CredentialVerifier(db)
        self.devices = DeviceRegistry(self.store)
        self.issuer = TokenIssuer(self.store, signer, policy)

    def device_limit(self, user: User) -> int:
        """Per-user override first, then the configured default. <= 0 is unlimited."""
        if user.max_devices is not None:
            return user.max_devices
        return self.policy.max_devices

    def _enforce_device_limit(self, user: User) -> None:
        limit = self.device_limit(user)
        if limit <= 0:
            return

        active_count = self.devices.count_active(user.id)
        logger.debug(
            "Active session count checked",
            extra={"user_id": user.id, "active_count": active_count, "max_devices": limit}
        )
        if active_count < limit:
            return

        active_devices = self.devices.active_devices(user.id)
        logger.warning(
            "Device limit exceeded",
            extra={
                "event": "device_limit_exceeded",
                "user_id": user.id,
                "active_count": len(active_devices),
                "max_devices": limit,
            }
        )
        raise AuthError(
            AuthErrorKind.DEVICE_LIMIT_EXCEEDED,
            max_devices=limit,
            active_devices=active_devices,
        )

    @staticmethod
    def _auth_response(user: User, access: IssuedToken, refresh: IssuedToken) -> AuthResponse:
        return AuthResponse(
            user=UserResponse.model_validate(user),
            access_token=access.to_response(),
            refresh_token=refresh.to_response(),
            authenticated_at=utcnow(),
        )

    def login(self, body: LoginRequest, user_agent: str | None = None) -> AuthResponse:
        """
        Raises:
            AuthError: INVALID_CREDENTIALS, INVALID_AUDIENCE,
                DEVICE_LIMIT_EXCEEDED (first call at the limit) or
                NOT_FOUND (device_id_to_revoke is not an active device)
        """
        user = self.credentials.verify(body.email, body.password)
        audience = self.issuer.resolve_audience(body.client_id)
        device_name = extract_device_name(user_agent)

        # Eviction and issuance commit together; if issuing fails the
        # evicted device stays logged in.
        with self.store.transaction():
            if body.device_id_to_revoke:
                self.devices.revoke_device(user.id, body.device_id_to_revoke, LOGIN_EVICTION)
                logger.info(
                    "Device evicted at login",
                    extra={"user_id": user.id, "device_id": body.device_id_to_revoke}
                )
            else:
                self._enforce_device_limit(user)

            access, refresh = self.issuer.issue_pair(user, audience, device_name)

        logger.info(
            "User logged in successfully",
            extra={"user_id": user.id, "device_id": refresh.record.id, "audience": audience}
        )
        return self._auth_response(user, access, refresh)

    def refresh(self, refresh_token: str) -> AuthResponse:
        """
        Exchange a refresh token for a new pair. The presented token is
        revoked; presenting it again fails.

        Raises:
            AuthError(INVALID_TOKEN): unknown, revoked, expired or already rotated
        """
        token = self.store.get_by_value(refresh_token)
        if token is None or token.token_type != TokenType.REFRESH or not token.is_valid:
            logger.warning(
                "Invalid refresh token provided",
                extra={"token": mask_token(refresh_token)}
            )
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "Invalid refresh token")

        user = self.credentials.get_active_user(token.user_id)
        if user is None:
            logger.warning(
                "Refresh token owner missing or inactive",
                extra={"user_id": token.user_id, "token_id": token.id}
            )
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "Invalid refresh token")

        access, refresh = self.issuer.rotate(token, user)
        return self._auth_response(user, access, refresh)

    def logout(self, body: LogoutRequest, current_user_id: int | None = None) -> None:
        """
        Revoke the current device, or every token of the user with
        logout_all_devices. Idempotent: unknown or already revoked tokens
        are a no-op.
        """
        if body.logout_all_devices and current_user_id is not None:
            with self.store.transaction():
                revoked = self.store.revoke_all_for_user(current_user_id, LOGOUT_ALL)
            logger.info(
                "User logged out from all devices",
                extra={"user_id": current_user_id, "revoked": revoked}
            )
            return

        if not body.refresh_token:
            logger.debug("Logout without token", extra={"user_id": current_user_id})
            return

        token = self.store.get_by_value(body.refresh_token)
        if token is None:
            logger.debug("Logout with unknown token", extra={"token": mask_token(body.refresh_token)})
            return

        if current_user_id is not None and token.user_id != current_user_id:
            logger.warning(
                "Logout attempted with another user's token",
                extra={"user_id": current_user_id, "token_owner_id": token.user_id}
            )
            return

        token_id, owner_id = token.id, token.user_id
        session_id = token.session_id or token_id
        ends_session = token.token_type == TokenType.REFRESH
        with self.store.transaction():
            revoked = self.store.revoke_if_valid(token_id, LOGOUT)
            # A stale refresh token from an earlier rotation must not end the live session
            if revoked and ends_session:
                self.store.revoke_session(session_id, LOGOUT)

        logger.info(
            "User logged out",
            extra={"user_id": owner_id, "token_id": token_id, "already_revoked": not revoked}
        )

    def validate(self, token: str) -> bool:
        """True iff the value matches a stored, unrevoked, unexpired token."""
        if not token or not token.strip():
            return False

        stored = self.store.get_by_value(token)
        valid = stored is not None and stored.is_valid
        if not valid:
            logger.debug("Token failed validation", extra={"token": mask_token(token)})
        return valid

    def revoke_user_tokens(self, user_id: int, revoked_by: str) -> int:
        """Admin path: revoke every access and refresh token of a user."""
        if not revoked_by or not revoked_by.strip():
            raise ValueError("revoked_by is required")

        with self.store.transaction():
            revoked = self.store.revoke_all_for_user(user_id, revoked_by)

        logger.info(
            "All tokens revoked for user",
            extra={"user_id": user_id, "revoked_by": revoked_by, "revoked": revoked}
        )
        return revoked

    def cleanup_expired_tokens(self) -> int:
        """Delete tokens expired for longer than the retention window."""
        cutoff = utcnow() - self.policy.retention
        deleted = self.store.delete_expired(cutoff, self.policy.cleanup_batch_size)
        logger.info(
            "Expired tokens cleanup completed",
            extra={"deleted": deleted, "cutoff": cutoff.isoformat()}
        )
        return deleted

    def active_devices(self, user_id: int) -> list[DeviceInfo]:
        return self.devices.active_devices(user_id)

    def revoke_device(self, user_id: int, device_id: str) -> None:
        with self.store.transaction():
            self.devices.revoke_device(user_id, device_id, DEVICE_REVOKED)
