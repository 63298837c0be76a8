"""
AUTHLIFECYCLE - Session Validator

Une session ne fait autorité qu'après un aller-retour backend
"qui possède ce token". Toute incertitude vaut invalidité.
"""

from typing import Optional

from ..logging import IStructuredLogger, StructuredLogger
from ..network import ITimeoutManager, TimeoutManager, TimeoutType
from .interfaces import IAuthBackend, ISessionValidator, Session


class SessionValidator(ISessionValidator):
    """
    Validation fail-closed des sessions.

    Example:
        validator = SessionValidator(backend)
        if await validator.is_valid(session):
            ...
    """

    def __init__(
        self,
        backend: IAuthBackend,
        timeout_manager: Optional[ITimeoutManager] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        self._backend = backend
        self._timeouts = timeout_manager or TimeoutManager()
        self._logger = logger or StructuredLogger("authlifecycle.validator")

    async def is_valid(self, session: Optional[Session]) -> bool:
        """
        Vérifie la session auprès du backend.

        Returns:
            False sans appel réseau si session absente, sans token ou sans
            utilisateur; sinon True uniquement si le backend résout une identité.
        """
        if session is None or not session.access_token or not session.user_id:
            return False

        try:
            identity = await self._timeouts.run(
                self._backend.get_user(session.access_token), TimeoutType.REQUEST
            )
        except Exception as e:
            self._logger.debug(
                "Session validation failed",
                user_id=session.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        return identity is not None
