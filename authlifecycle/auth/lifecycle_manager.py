"""
AUTHLIFECYCLE - Session Lifecycle Manager

Machine à états qui garde une session valide disponible:

    UNINITIALIZED → INITIALIZING → AUTHENTICATED ⇄ REFRESHING
                          ↓                ↓
                    UNAUTHENTICATED ← (sign out, révocation externe)
    * → DESTROYED (cleanup)

Garanties:
    - Au plus un timer de refresh en attente; tout nouveau timer annule le précédent
    - Délai de refresh borné à [0, session_refresh_ceiling]
    - Session issue d'un refresh encore dans la marge → backoff, pas de boucle de refresh
    - Échec de refresh → ré-authentification complète, jamais d'erreur propagée
    - Tout résultat asynchrone est ignoré si l'epoch a changé depuis son lancement
    - cleanup() annule les tâches en vol
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from ..core import AuthSettings
from ..logging import ContextualLogger, StructuredLogger
from ..network import (
    IRetryPolicy,
    ITimeoutManager,
    RetryConfig,
    RetryPolicy,
    TimeoutConfig,
    TimeoutManager,
    TimeoutType,
)
from .errors import AuthError, DecodeError, InitializationFailure, InvalidCredentials, classify_error
from .interfaces import (
    AuthEvent,
    Credentials,
    IKeyValueStorage,
    ISessionLifecycleManager,
    ISessionStore,
    ISessionValidator,
    ITokenInspector,
    LifecycleState,
    Session,
    SessionCallback,
    Subscription,
    Unsubscribe,
)
from .token_inspector import JWTTokenInspector


class SessionLifecycleManager(ISessionLifecycleManager):
    """
    Orchestrateur du cycle de vie de session.

    Une instance par application, construite par la racine de composition
    (voir build_lifecycle_manager) et passée explicitement aux consommateurs.

    Example:
        manager = build_lifecycle_manager(settings)
        unsubscribe = manager.on_change(lambda session: render(session))
        await manager.initialize()
        ...
        manager.cleanup()
    """

    def __init__(
        self,
        store: ISessionStore,
        validator: ISessionValidator,
        storage: IKeyValueStorage,
        settings: Optional[AuthSettings] = None,
        token_inspector: Optional[ITokenInspector] = None,
        retry_policy: Optional[IRetryPolicy] = None,
        timeout_manager: Optional[ITimeoutManager] = None,
        logger: Optional[StructuredLogger] = None,
        credentials: Optional[Credentials] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            store: Accès normalisé au backend
            validator: Validation fail-closed des sessions
            storage: Stockage local (purge des clés obsolètes)
            settings: Constantes (défaut: AuthSettings())
            token_inspector: Lecture de l'expiration des tokens
            retry_policy: Politique de retry de l'authentification
            timeout_manager: Bornes de temps (initialisation, requêtes)
            logger: Logger structuré
            credentials: Identifiants (défaut: compte de démonstration)
            clock: Horloge en secondes depuis epoch
        """
        self._settings = settings or AuthSettings()
        self._store = store
        self._validator = validator
        self._storage = storage
        self._inspector = token_inspector or JWTTokenInspector()
        self._logger = logger or StructuredLogger("authlifecycle.lifecycle")
        self._timeouts = timeout_manager or TimeoutManager(
            TimeoutConfig(
                auth_check_timeout=self._settings.auth_check_timeout,
                request_timeout=self._settings.request_timeout,
            )
        )
        self._retry = retry_policy or RetryPolicy(
            RetryConfig(
                max_attempts=self._settings.retry_max_attempts,
                base_delay=self._settings.retry_base_delay,
                backoff_factor=self._settings.retry_backoff_factor,
                max_delay=self._settings.auth_check_timeout,
            ),
            logger=self._logger,
        )
        demo = self._settings.demo_credentials
        self._credentials = credentials or Credentials(email=demo.email, password=demo.password)
        self._create_demo_account = credentials is None and demo.create_if_missing
        self._clock = clock

        self._state = LifecycleState.UNINITIALIZED
        self._session: Optional[Session] = None
        self._listeners: List[SessionCallback] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._init_task: Optional[asyncio.Task] = None
        self._background_tasks: Set[asyncio.Task] = set()
        self._backend_subscription: Optional[Subscription] = None
        self._epoch = 0
        self._destroyed = False
        self._margin_backoffs = 0

    # ──────────────────────────────────────────────────────────────────────────
    # Lecture
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def has_pending_refresh(self) -> bool:
        """True si un timer de refresh est en attente."""
        return self._timer is not None

    def get_current_session(self) -> Optional[Session]:
        """Instantané synchrone de la session courante."""
        return self._session

    # ──────────────────────────────────────────────────────────────────────────
    # Abonnements
    # ──────────────────────────────────────────────────────────────────────────

    def on_change(self, callback: SessionCallback) -> Unsubscribe:
        """
        Abonne callback aux changements de session (y compris vers None).

        Les callbacks sont appelés de façon synchrone, dans l'ordre
        d'inscription. Une exception dans un callback est journalisée et
        n'empêche pas les suivants.

        Returns:
            Fonction de désabonnement (idempotente)
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, session: Optional[Session]) -> None:
        for callback in list(self._listeners):
            try:
                callback(session)
            except Exception as e:
                self._logger.error(
                    "Session change callback failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def _set_session(self, session: Optional[Session]) -> None:
        """Remplace la session et notifie les abonnés si la référence change."""
        if session is self._session:
            return
        self._session = session
        self._notify(session)

    def _set_state(self, state: LifecycleState) -> None:
        if state != self._state:
            self._logger.debug("State transition", previous=self._state.value, current=state.value)
            self._state = state

    def _is_stale(self, epoch: int) -> bool:
        return self._destroyed or epoch != self._epoch

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    # ──────────────────────────────────────────────────────────────────────────
    # Initialisation
    # ──────────────────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """
        Établit une session valide.

        Les appels concurrents partagent la même exécution; un appel après
        une initialisation réussie retourne immédiatement.

        Raises:
            InitializationFailure: Aucune session n'a pu être établie dans
                le délai auth_check_timeout (cause: erreur d'origine)
        """
        if self._destroyed:
            raise InitializationFailure("Session manager has been destroyed")

        if self._refresh_task is not None and not self._refresh_task.done():
            await self._join(self._refresh_task)
            if self._destroyed:
                return

        if self._state in (LifecycleState.AUTHENTICATED, LifecycleState.REFRESHING):
            return

        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._run_initialize(self._epoch))
        await self._join(self._init_task)

    async def _join(self, task: asyncio.Task) -> None:
        """Attend task sans propager son annulation par cleanup()."""
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not (self._destroyed and task.cancelled()):
                raise

    async def _run_initialize(self, epoch: int) -> None:
        log = self._logger.with_context()
        self._set_state(LifecycleState.INITIALIZING)
        log.info("Initializing session lifecycle")

        self._clear_stale_data(log)

        try:
            self._subscribe_backend()
            await self._timeouts.run(self._establish_session(epoch, log), TimeoutType.AUTH_CHECK)
        except asyncio.CancelledError:
            if not self._destroyed:
                raise
            log.info("Initialization cancelled by teardown")
        except Exception as e:
            if self._is_stale(epoch):
                log.info("Initialization outcome discarded after teardown")
                return
            self._set_state(LifecycleState.UNAUTHENTICATED)
            log.error(
                "Session initialization failed",
                error=str(e),
                error_type=type(e).__name__,
                error_kind=classify_error(e).value,
            )
            raise InitializationFailure(cause=e) from e

    def _clear_stale_data(self, log: ContextualLogger) -> None:
        """Purge best-effort des artefacts persistés obsolètes."""
        for key in self._settings.stale_storage_keys:
            try:
                self._storage.remove(key)
            except Exception as e:
                log.warn("Stale data cleanup failed", storage_entry=key, error=str(e))

    def _subscribe_backend(self) -> None:
        if self._backend_subscription is None:
            self._backend_subscription = self._store.on_auth_state_change(
                self._handle_auth_state_change
            )

    async def _establish_session(self, epoch: int, log: ContextualLogger) -> None:
        existing = await self._store.current()
        if self._is_stale(epoch):
            return

        if existing is not None:
            valid = await self._validator.is_valid(existing)
            if self._is_stale(epoch):
                return
            if valid:
                log.info("Existing session recovered", user_id=existing.user_id)
                self._apply_session(existing, AuthEvent.SIGNED_IN, log)
                return
            log.info("Existing session rejected", user_id=existing.user_id)
            await self._store.clear_local()
            if self._is_stale(epoch):
                return

        await self._authenticate(epoch, log)

    async def _authenticate(self, epoch: int, log: ContextualLogger, refreshed: bool = False) -> None:
        credentials = self._credentials
        create_account = self._create_demo_account

        async def sign_in() -> Session:
            nonlocal create_account
            try:
                return await self._store.authenticate(credentials)
            except InvalidCredentials:
                if not create_account:
                    raise
            # Une seule création de compte par authentification
            create_account = False
            log.info("Demo account not found, creating it")
            await self._store.sign_up(credentials, {"role": self._settings.demo_credentials.role})
            return await self._store.authenticate(credentials)

        session = await self._retry.retry(sign_in)
        if self._is_stale(epoch):
            log.info("Authentication result discarded", user_id=session.user_id)
            return
        self._apply_session(session, AuthEvent.SIGNED_IN, log, refreshed=refreshed)

    def _apply_session(
        self,
        session: Session,
        event: AuthEvent,
        log: ContextualLogger,
        refreshed: bool = False,
    ) -> None:
        """
        Installe une session valide: remplacement, timer, notification.

        refreshed: la session provient du chemin de refresh (refresh ou
        ré-authentification de repli).
        """
        self._set_state(LifecycleState.AUTHENTICATED)
        self._schedule_refresh(session, log, refreshed)
        log.info(
            "Session established",
            auth_event=event.value,
            user_id=session.user_id,
            expires_at=session.expires_at.isoformat() if session.expires_at else None,
        )
        self._set_session(session)

    # ──────────────────────────────────────────────────────────────────────────
    # Refresh
    # ──────────────────────────────────────────────────────────────────────────

    def compute_refresh_delay(self, access_token: str) -> float:
        """
        Délai avant refresh, en secondes.

        delay = expiration - maintenant - marge, borné à [0, plafond]

        Raises:
            DecodeError: Token illisible
        """
        expires_ms = self._inspector.expiry_of(access_token)
        now_ms = self._clock() * 1000
        delay_ms = expires_ms - now_ms - self._settings.refresh_safety_margin * 1000
        ceiling_ms = self._settings.session_refresh_ceiling * 1000
        return max(0.0, min(delay_ms, ceiling_ms)) / 1000

    def _schedule_refresh(self, session: Session, log: ContextualLogger, refreshed: bool = False) -> None:
        """
        Programme le prochain refresh.

        Un délai nul déclenche un refresh immédiat, sauf si la session vient
        elle-même d'un refresh: le délai suit alors un backoff exponentiel
        (token plus court que la marge, horloges décalées).
        """
        self._cancel_timer()
        try:
            delay = self.compute_refresh_delay(session.access_token)
        except DecodeError as e:
            delay = self._settings.session_refresh_ceiling
            log.warn("Token expiry unreadable, using refresh ceiling", error=str(e), delay=delay)

        epoch = self._epoch
        if delay > 0:
            self._margin_backoffs = 0
        elif refreshed:
            self._margin_backoffs += 1
            delay = self._margin_backoff_delay(self._margin_backoffs)
            log.warn(
                "Refreshed session still within safety margin, delaying next refresh",
                user_id=session.user_id,
                attempt=self._margin_backoffs,
                delay=delay,
            )
        else:
            log.info("Session within safety margin, refreshing now", user_id=session.user_id)
            self._start_refresh(epoch)
            return

        self._timer = asyncio.get_running_loop().call_later(delay, self._on_refresh_timer, epoch)
        log.debug("Refresh scheduled", delay=delay)

    def _margin_backoff_delay(self, attempt: int) -> float:
        """min(retry_base_delay * retry_backoff_factor ^ attempt, plafond)"""
        delay = self._settings.retry_base_delay * (self._settings.retry_backoff_factor ** attempt)
        return min(delay, self._settings.session_refresh_ceiling)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_refresh_timer(self, epoch: int) -> None:
        self._timer = None
        if self._is_stale(epoch):
            return
        self._start_refresh(epoch)

    def _start_refresh(self, epoch: int) -> None:
        running = self._refresh_task
        if running is not None and not running.done() and running is not asyncio.current_task():
            return
        self._set_state(LifecycleState.REFRESHING)
        self._refresh_task = asyncio.ensure_future(self._refresh(epoch))

    async def _refresh(self, epoch: int) -> None:
        log = self._logger.with_context()
        log.info("Refreshing session")
        try:
            await self._run_refresh(epoch, log)
        except asyncio.CancelledError:
            if not self._destroyed:
                raise
            log.info("Refresh cancelled by teardown")

    async def _run_refresh(self, epoch: int, log: ContextualLogger) -> None:
        try:
            session = await self._store.refresh()
        except AuthError as e:
            if self._is_stale(epoch):
                return
            log.warn(
                "Session refresh failed, falling back to sign in",
                error=str(e),
                error_kind=e.kind.value,
            )
            await self._reauthenticate(epoch, log)
            return

        if self._is_stale(epoch):
            log.info("Refresh result discarded", user_id=session.user_id)
            return
        self._apply_session(session, AuthEvent.TOKEN_REFRESHED, log, refreshed=True)

    async def _reauthenticate(self, epoch: int, log: ContextualLogger) -> None:
        """Repli après échec de refresh: signed-out puis nouvelle connexion."""
        self._cancel_timer()
        self._set_state(LifecycleState.INITIALIZING)
        self._set_session(None)
        try:
            await self._timeouts.run(self._sign_in_again(epoch, log), TimeoutType.AUTH_CHECK)
        except Exception as e:
            if self._is_stale(epoch):
                return
            self._set_state(LifecycleState.UNAUTHENTICATED)
            log.error(
                "Re-authentication failed",
                error=str(e),
                error_type=type(e).__name__,
                error_kind=classify_error(e).value,
            )

    async def _sign_in_again(self, epoch: int, log: ContextualLogger) -> None:
        await self._store.clear_local()
        if self._is_stale(epoch):
            return
        await self._authenticate(epoch, log, refreshed=True)

    async def refresh_session(self) -> Optional[Session]:
        """
        Refresh à la demande (un refresh déjà en cours est réutilisé).

        Pendant une initialisation, attend son issue sans lancer de refresh.

        Returns:
            Session courante après refresh (None si aucune n'a pu être établie)
        """
        if self._destroyed or self._state in (
            LifecycleState.UNINITIALIZED,
            LifecycleState.UNAUTHENTICATED,
        ):
            return self._session

        if self._init_task is not None and not self._init_task.done():
            try:
                await self._join(self._init_task)
            except InitializationFailure:
                # Déjà journalisé et relancé vers l'appelant de initialize()
                pass
            return self._session

        if self._refresh_task is None or self._refresh_task.done():
            if self._state != LifecycleState.AUTHENTICATED:
                return self._session
            self._cancel_timer()
            self._start_refresh(self._epoch)
        await self._join(self._refresh_task)
        return self._session

    async def ensure_valid_session(self) -> Optional[Session]:
        """
        Vérifie la session courante et la renouvelle si elle n'est plus valide.

        Returns:
            Session valide ou None
        """
        session = self._session
        if session is None:
            return None
        if not session.is_expired(self._now()) and await self._validator.is_valid(session):
            return self._session
        if session is not self._session:
            return self._session
        self._logger.info("Current session no longer valid", user_id=session.user_id)
        return await self.refresh_session()

    # ──────────────────────────────────────────────────────────────────────────
    # Notifications backend
    # ──────────────────────────────────────────────────────────────────────────

    def _handle_auth_state_change(self, event: AuthEvent, session: Optional[Session]) -> None:
        if self._destroyed:
            return

        if event == AuthEvent.SIGNED_OUT:
            if self._session is None:
                return
            self._logger.warn("Session signed out externally", user_id=self._session.user_id)
            self._epoch += 1
            self._cancel_timer()
            self._set_state(LifecycleState.UNAUTHENTICATED)
            self._set_session(None)
            return

        if event not in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED) or session is None:
            return
        if self._state != LifecycleState.AUTHENTICATED:
            return
        if self._session is not None and session.access_token == self._session.access_token:
            return

        task = asyncio.ensure_future(self._adopt_external_session(session, self._epoch))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _adopt_external_session(self, session: Session, epoch: int) -> None:
        log = self._logger.with_context()
        valid = await self._validator.is_valid(session)
        if self._is_stale(epoch) or self._state != LifecycleState.AUTHENTICATED:
            return
        if not valid:
            log.warn("External session rejected", user_id=session.user_id)
            return
        self._apply_session(session, AuthEvent.TOKEN_REFRESHED, log)

    # ──────────────────────────────────────────────────────────────────────────
    # Fin de session
    # ──────────────────────────────────────────────────────────────────────────

    async def sign_out(self) -> None:
        """
        Déconnexion explicite.

        Les opérations en vol sont invalidées; l'échec de l'appel distant est
        journalisé par le store et n'empêche pas la déconnexion locale.
        """
        if self._destroyed:
            return
        self._epoch += 1
        self._cancel_timer()
        self._margin_backoffs = 0
        self._set_state(LifecycleState.UNAUTHENTICATED)
        self._set_session(None)
        self._logger.info("Signing out")
        await self._store.sign_out()

    def cleanup(self) -> None:
        """
        Démontage idempotent.

        Annule le timer et les tâches en vol (initialisation, refresh,
        adoption de session externe), se désabonne du backend, oublie abonnés
        et session (sans notification). Un résultat arrivé malgré
        l'annulation est ignoré par la garde d'epoch.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._epoch += 1
        self._cancel_timer()
        for task in (self._init_task, self._refresh_task, *self._background_tasks):
            if task is not None and not task.done():
                task.cancel()
        if self._backend_subscription is not None:
            self._backend_subscription.unsubscribe()
            self._backend_subscription = None
        self._listeners.clear()
        self._session = None
        self._set_state(LifecycleState.DESTROYED)
        self._logger.info("Session lifecycle destroyed")
