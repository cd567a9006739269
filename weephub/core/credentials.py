"""
Credential Store

Named, enabled/disabled device-control credentials ("sources"), each holding a
vault-encrypted token. Persisted as {"smartthings": {"entries": [...]}} and
rewritten whole after every mutation.
"""

import logging
import secrets
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import IntegrityError, NoCredentialAvailable, NotFoundError, ValidationError
from .models import CredentialEntry, Source, SourceUpsert, SourceView, now_ms
from .storage import read_json, write_json_atomic
from .vault import SecretVault

logger = logging.getLogger(__name__)

SOURCE_KIND = "smartthings"
DEFAULT_LABEL = "SmartThings"
ENV_SOURCE_ID = "env"


def mask_token(token: str) -> str:
    """Show only the last four characters of a token"""
    if len(token) <= 4:
        return "****"
    return f"****{token[-4:]}"


class CredentialStore:
    """
    Durable mapping of credential sources.

    Only this class decrypts tokens. Entries whose ciphertext fails integrity
    verification are treated as unusable rather than fatal.
    """

    def __init__(
        self,
        path: Path,
        vault: SecretVault,
        fallback_token: Optional[str] = None
    ):
        self.path = Path(path)
        self.vault = vault
        self.fallback_token = fallback_token or None
        self._entries: List[CredentialEntry] = self._load()

    def _load(self) -> List[CredentialEntry]:
        payload = read_json(self.path, {SOURCE_KIND: {"entries": []}})
        raw_entries = payload.get(SOURCE_KIND, {}).get("entries", [])
        entries = []
        for raw in raw_entries:
            try:
                entries.append(CredentialEntry.model_validate(raw))
            except PydanticValidationError as e:
                logger.error(
                    f"Skipping unreadable credential source "
                    f"{raw.get('id') if isinstance(raw, dict) else raw!r}: {e.error_count()} errors"
                )
        logger.info(f"Loaded {len(entries)} credential sources from {self.path}")
        return entries

    def _persist(self, entries: List[CredentialEntry]) -> None:
        write_json_atomic(self.path, {
            SOURCE_KIND: {
                "entries": [e.model_dump(by_alias=True) for e in entries]
            }
        })

    def _decrypt(self, entry: CredentialEntry) -> Optional[Source]:
        try:
            token = self.vault.decrypt(entry.encrypted_token)
        except IntegrityError as e:
            logger.warning(f"Credential source {entry.id} is unusable: {e}")
            return None
        return Source(id=entry.id, label=entry.label, token=token, enabled=entry.enabled)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_entries(self) -> List[SourceView]:
        """All stored sources with their tokens masked"""
        views = []
        for entry in self._entries:
            source = self._decrypt(entry)
            views.append(SourceView(
                id=entry.id,
                label=entry.label,
                enabled=entry.enabled,
                updated_at=entry.updated_at,
                token_hint=mask_token(source.token) if source else None
            ))
        return views

    def list_enabled_sources(self) -> List[Source]:
        """Decrypted enabled sources; undecryptable entries are dropped"""
        sources = []
        for entry in self._entries:
            if not entry.enabled:
                continue
            source = self._decrypt(entry)
            if source:
                sources.append(source)
        return sources

    def get_entry(self, source_id: str) -> Optional[CredentialEntry]:
        return next((e for e in self._entries if e.id == source_id), None)

    def resolve(self, source_id: Optional[str] = None) -> Source:
        """
        Pick the credential to dispatch with.

        An explicit source_id is used as-is, whether enabled or not. Otherwise
        the first enabled usable source wins, then the environment fallback token.

        Raises:
            NotFoundError: explicit source_id is unknown
            NoCredentialAvailable: nothing usable to dispatch with
        """
        if source_id:
            if source_id == ENV_SOURCE_ID and self.fallback_token and not self.get_entry(source_id):
                return self._fallback_source()

            entry = self.get_entry(source_id)
            if not entry:
                raise NotFoundError(f"Source {source_id} not found")
            source = self._decrypt(entry)
            if not source:
                raise NoCredentialAvailable(f"Source {source_id} token cannot be decrypted")
            return source

        enabled = self.list_enabled_sources()
        if enabled:
            return enabled[0]

        if self.fallback_token:
            return self._fallback_source()

        raise NoCredentialAvailable("No enabled credential source configured")

    def _fallback_source(self) -> Source:
        return Source(id=ENV_SOURCE_ID, label="Environment", token=self.fallback_token, enabled=True)

    # =========================================================================
    # Mutations
    # =========================================================================

    def upsert(self, data: SourceUpsert) -> str:
        """
        Create a source or merge supplied fields into an existing one.

        Returns:
            The id of the created or updated source
        """
        if data.token is not None and not data.token.strip():
            raise ValidationError("token must not be empty")
        if data.label is not None and not data.label.strip():
            raise ValidationError("label must not be empty")

        existing = self.get_entry(data.id) if data.id else None
        timestamp = now_ms()

        if existing:
            updates: Dict[str, object] = {"updated_at": max(timestamp, existing.updated_at + 1)}
            if data.label is not None:
                updates["label"] = data.label.strip()
            if data.token is not None:
                updates["encrypted_token"] = self.vault.encrypt(data.token.strip())
            if data.enabled is not None:
                updates["enabled"] = data.enabled
            entry = existing.model_copy(update=updates)
            entries = [entry if e.id == existing.id else e for e in self._entries]
        else:
            if not data.token:
                raise ValidationError("token is required for a new source")
            entry = CredentialEntry(
                id=secrets.token_hex(8),
                label=(data.label or DEFAULT_LABEL).strip(),
                enabled=True if data.enabled is None else data.enabled,
                encrypted_token=self.vault.encrypt(data.token.strip()),
                updated_at=timestamp
            )
            entries = [*self._entries, entry]

        self._persist(entries)
        self._entries = entries

        logger.info(
            f"{'Updated' if existing else 'Created'} credential source "
            f"{entry.id} ({entry.label}, enabled={entry.enabled})"
        )
        return entry.id
