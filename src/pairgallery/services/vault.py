"""
Password-gated private vault.

The vault password never leaves the device: its bcrypt hash is kept in the
local preferences store. The vault gallery is a GallerySession over private
items that refuses to open or mutate while the gate is locked.
"""

import bcrypt

from ..error_handling import AuthorizationError, ValidationError, VaultLockedError
from ..logging_config import get_logger, log_security_event
from .gallery import GallerySession
from .preferences import AppSettings

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 4


class VaultGate:
    """Lock state of the vault for one app session."""

    def __init__(self, settings: AppSettings):
        self.settings = settings
        self._unlocked = False

    @property
    def has_password(self) -> bool:
        return bool(self.settings.vault_password_hash)

    def is_unlocked(self) -> bool:
        return self._unlocked

    def _validate_new_password(self, password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "Vault password too short",
                code="password_too_short",
                user_message=f"Use at least {MIN_PASSWORD_LENGTH} characters.",
            )

    def _check(self, password: str) -> bool:
        stored = self.settings.vault_password_hash
        if not stored:
            return False
        try:
            return bcrypt.checkpw((password or "").encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            logger.error("vault_hash_invalid")
            return False

    def set_password(self, password: str) -> None:
        """
        Set the first vault password and unlock.

        Raises:
            ValidationError: If the password is too short
            AuthorizationError: If a password already exists
        """
        if self.has_password:
            raise AuthorizationError(
                "Vault password already set", code="vault_password_exists", user_message="Use change password instead."
            )
        self._validate_new_password(password)
        self.settings.set_vault_password_hash(bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8"))
        self._unlocked = True
        log_security_event("vault_password_set")

    def unlock(self, password: str) -> None:
        """
        Unlock the vault.

        Raises:
            AuthorizationError: If no password is set or the password is wrong
        """
        if not self.has_password:
            raise AuthorizationError(
                "Vault has no password", code="vault_no_password", user_message="Set a vault password first."
            )
        if not self._check(password):
            self._unlocked = False
            raise AuthorizationError(
                "Wrong vault password", code="vault_wrong_password", user_message="Wrong password."
            )
        self._unlocked = True
        logger.info("vault_unlocked")

    def lock(self) -> None:
        self._unlocked = False
        logger.info("vault_locked")

    def change_password(self, current: str, new: str) -> None:
        """
        Replace the vault password.

        Raises:
            AuthorizationError: If ``current`` is wrong
            ValidationError: If ``new`` is too short
        """
        if not self._check(current):
            raise AuthorizationError(
                "Wrong vault password", code="vault_wrong_password", user_message="Current password is wrong."
            )
        self._validate_new_password(new)
        self.settings.set_vault_password_hash(bcrypt.hashpw(new.encode("utf-8"), bcrypt.gensalt()).decode("utf-8"))
        log_security_event("vault_password_changed")

    def require_unlocked(self) -> None:
        """
        Raises:
            VaultLockedError: If the vault is locked
        """
        if not self._unlocked:
            raise VaultLockedError()


class VaultSession(GallerySession):
    """Gallery over private items, usable only while the gate is unlocked."""

    def __init__(self, gate: VaultGate, *args, **kwargs):
        kwargs["private"] = True
        super().__init__(*args, **kwargs)
        self.gate = gate

    async def open(self) -> None:
        self.gate.require_unlocked()
        await super().open()

    async def upload(self, *args, **kwargs):
        self.gate.require_unlocked()
        return await super().upload(*args, **kwargs)

    async def batch_delete(self, entity_ids) -> int:
        self.gate.require_unlocked()
        return await super().batch_delete(entity_ids)

    async def _set_favorite(self, entity_ids: list[str], favorite: bool) -> None:
        self.gate.require_unlocked()
        await super()._set_favorite(entity_ids, favorite)

    async def move_to_gallery(self, entity_ids) -> int:
        """Move items back to the shared gallery."""
        self.gate.require_unlocked()
        return await self.set_private(entity_ids, False)

    def entries(self):
        self.gate.require_unlocked()
        return super().entries()


async def move_to_vault(gallery: GallerySession, gate: VaultGate, entity_ids) -> int:
    """
    Move items from the shared gallery into the vault.

    Raises:
        VaultLockedError: If the vault is locked
    """
    gate.require_unlocked()
    return await gallery.set_private(entity_ids, True)
