"""Workspace secret resolution."""

import threading
from typing import Optional

from stampduty_sdk import WebhookVerifier
from stampduty_api.settings import Settings


class UnknownWorkspaceError(LookupError):
    """No webhook secret is configured for the workspace."""

    def __init__(self, workspace_id: Optional[str]):
        """Initialize with the workspace that was looked up."""
        self.workspace_id = workspace_id
        label = workspace_id if workspace_id is not None else "<default>"
        super().__init__(f"No webhook secret configured for workspace {label}")


class SecretResolver:
    """Resolve a workspace to a verifier keyed with its secret."""

    def __init__(
        self,
        default_secret: Optional[str] = None,
        workspace_secrets: Optional[dict[str, str]] = None,
        tolerance_seconds: int = 300,
    ):
        """Initialize resolver."""
        self.default_secret = default_secret
        self.workspace_secrets = dict(workspace_secrets or {})
        self.tolerance_seconds = tolerance_seconds
        self._verifiers: dict[Optional[str], WebhookVerifier] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretResolver":
        """Build resolver from application settings."""
        return cls(
            default_secret=settings.webhook_secret,
            workspace_secrets=settings.webhook_workspace_secrets,
            tolerance_seconds=settings.webhook_tolerance_seconds,
        )

    def secret_for(self, workspace_id: Optional[str]) -> str:
        """Return the raw secret for a workspace (None = default endpoint)."""
        if workspace_id is None:
            secret = self.default_secret
        else:
            secret = self.workspace_secrets.get(workspace_id)
        if not secret:
            raise UnknownWorkspaceError(workspace_id)
        return secret

    def resolve(self, workspace_id: Optional[str]) -> WebhookVerifier:
        """Return the (cached) verifier for a workspace."""
        verifier = self._verifiers.get(workspace_id)
        if verifier is not None:
            return verifier

        secret = self.secret_for(workspace_id)
        with self._lock:
            verifier = self._verifiers.get(workspace_id)
            if verifier is None:
                verifier = WebhookVerifier(secret, self.tolerance_seconds)
                self._verifiers[workspace_id] = verifier
        return verifier

    def rotate(self, workspace_id: Optional[str], secret: str) -> None:
        """Replace a workspace secret; the previous one stops verifying."""
        verifier = WebhookVerifier(secret, self.tolerance_seconds)
        with self._lock:
            if workspace_id is None:
                self.default_secret = secret
            else:
                self.workspace_secrets[workspace_id] = secret
            self._verifiers[workspace_id] = verifier
