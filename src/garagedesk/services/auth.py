from __future__ import annotations

import hmac


class AdminGate:
    """Shared admin password checked before destructive actions in the UI."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, candidate: str | None) -> bool:
        if not candidate or not self._secret:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._secret.encode("utf-8"))
