"""
Error Taxonomy

Every failure the control plane reports to its callers derives from WeepHubError.
"""

from typing import Optional


class WeepHubError(Exception):
    """Base class for all control plane errors"""


class ValidationError(WeepHubError):
    """Malformed routine, credential or settings payload"""


class NotFoundError(WeepHubError):
    """Unknown routine or credential id"""


class NoCredentialAvailable(WeepHubError):
    """Dispatch requested with no usable source"""


class RemoteCommandError(WeepHubError):
    """Non-success response (or transport failure) from the device-control API"""

    def __init__(self, status_code: Optional[int], body: str = ""):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"Remote request failed: {body}"
        else:
            message = f"Remote API returned {status_code}: {body}"
        super().__init__(message)


class IntegrityError(WeepHubError):
    """Vault ciphertext failed authentication or is malformed"""


class VaultKeyError(WeepHubError):
    """Vault key file exists but does not hold a valid key"""


class PersistenceError(WeepHubError):
    """A store could not write its state to disk"""
