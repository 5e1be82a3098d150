"""
Admin authorization for the SpeedWatch server.

A single shared secret (the admin key) guards the one destructive
operation, DELETE /api/violations. There are no users, roles or tokens.

- Key arrives as the ?key= query parameter
- Constant-time comparison
- An empty configured key disables the destructive operation entirely

Property of Uncompromising Sensors LLC.
"""

import hmac
from typing import Optional

from speedwatch.logging import getLogger


class UnauthorizedError(Exception):
    """Destructive operation attempted without the admin key"""
    pass


class AdminAuth:
    """Shared-secret check for admin operations"""

    def __init__(self, adminKey: str):
        self.log = getLogger()
        self._adminKey = adminKey or ''
        if not self._adminKey:
            self.log.warning("[Auth] No admin key configured - delete-all is disabled")
        elif self._adminKey == 'changeme':
            self.log.warning("[Auth] Admin key is the default 'changeme' - set ADMIN_KEY in production")

    def isAuthorized(self, key: Optional[str]) -> bool:
        if not self._adminKey or key is None:
            return False
        return hmac.compare_digest(key.encode('utf-8'), self._adminKey.encode('utf-8'))

    def requireAdmin(self, key: Optional[str], remote: Optional[str] = None):
        """
        Raises:
            UnauthorizedError: Key missing or wrong
        """
        if not self.isAuthorized(key):
            self.log.warning("[Auth] Rejected admin request", remote=remote)
            raise UnauthorizedError("Unauthorized")
