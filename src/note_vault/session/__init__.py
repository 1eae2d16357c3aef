"""Session key holding and session lifecycle."""

from note_vault.session.keyring import ActiveSession, SessionKeyring
from note_vault.session.manager import SessionLifecycleManager

__all__ = ["ActiveSession", "SessionKeyring", "SessionLifecycleManager"]
