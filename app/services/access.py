"""
Admin authorization.

A caller is an admin when their uid is in either allow-list or when any grant
document exists for their uid or lowercased email. Super-admin status comes
from the super-admin allow-list, otherwise from the role on the first grant
document found by the ordered strategies below (uid before email).
"""
import logging
import threading
from typing import Callable, List, NamedTuple, Optional

from app.core.config import Settings
from app.core.errors import AccessDenied
from app.core.rbac import Action, check_permission, effective_role
from app.db.collections import ADMIN_REQUESTS, ADMINS, ADMINS_BY_EMAIL, email_key
from app.db.subscriptions import Subscription
from app.models.admin import AccessState, RequestStatus, Role, grant_role
from app.models.user import CurrentUser

logger = logging.getLogger("darbar.access")


class AccessLevel(NamedTuple):
    is_admin: bool = False
    is_super_admin: bool = False

    @property
    def role(self) -> Optional[Role]:
        return effective_role(self.is_admin, self.is_super_admin)


DENIED = AccessLevel(False, False)


class UidGrantStrategy:
    """admins/{uid}"""
    name = "uid"

    def lookup(self, db, uid: str, email: Optional[str]) -> Optional[Role]:
        snap = db.collection(ADMINS).document(uid).get()
        return grant_role(snap.to_dict()) if snap.exists else None


class EmailGrantStrategy:
    """admins_by_email/{lowercased email}"""
    name = "email"

    def lookup(self, db, uid: str, email: Optional[str]) -> Optional[Role]:
        if not email:
            return None
        snap = db.collection(ADMINS_BY_EMAIL).document(email_key(email)).get()
        return grant_role(snap.to_dict()) if snap.exists else None


DEFAULT_STRATEGIES = (UidGrantStrategy(), EmailGrantStrategy())


class AuthorizationResolver:
    def __init__(self, db, settings: Settings, strategies=DEFAULT_STRATEGIES):
        self.db = db
        self.settings = settings
        self.strategies = list(strategies)

    def resolve(self, uid: str, email: Optional[str] = None) -> AccessLevel:
        if uid in self.settings.super_admin_uids:
            return AccessLevel(True, True)

        try:
            # Every strategy runs: any grant makes an admin, the first one found decides super
            found = [role for role in (s.lookup(self.db, uid, email) for s in self.strategies) if role is not None]
        except Exception as e:
            logger.error(f"Admin lookup failed for {uid}: {e}")
            return DENIED

        is_super = bool(found) and found[0] == Role.SUPER_ADMIN
        is_admin = uid in self.settings.admin_uids or bool(found)
        return AccessLevel(is_admin, is_super)

    def resolve_user(self, user: CurrentUser) -> AccessLevel:
        return self.resolve(user.uid, user.email)

    def resolve_state(self, user: CurrentUser) -> AccessState:
        level = self.resolve_user(user)
        return AccessState(
            is_admin=level.is_admin,
            is_super_admin=level.is_super_admin,
            is_admin_pending=False if level.is_admin else self._has_pending_request(user.uid),
        )

    def _has_pending_request(self, uid: str) -> bool:
        try:
            snap = self.db.collection(ADMIN_REQUESTS).document(uid).get()
        except Exception as e:
            logger.error(f"Failed to read admin request for {uid}: {e}")
            return False
        return snap.exists and (snap.to_dict() or {}).get("status") == RequestStatus.PENDING

    def require(self, user: CurrentUser, action: Action) -> AccessLevel:
        """Resolves the caller from trusted state and raises AccessDenied if the policy forbids `action`."""
        level = self.resolve_user(user)
        if not check_permission(level.role, action):
            logger.info(f"Denied {action.value} to {user.uid}")
            raise AccessDenied()
        return level


class AccessWatcher:
    """
    Pushes a fresh AccessState whenever the caller's grant documents or admin
    request change. Listens on exactly admins/{uid}, admins_by_email/{email}
    and admin_requests/{uid}.
    """

    def __init__(self, resolver: AuthorizationResolver, user: CurrentUser,
                 listener: Callable[[AccessState], None]):
        self.resolver = resolver
        self.user = user
        self._listener = listener
        self._last: Optional[AccessState] = None
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

        db = resolver.db
        targets = [db.collection(ADMINS).document(user.uid)]
        if user.email:
            targets.append(db.collection(ADMINS_BY_EMAIL).document(email_key(user.email)))
        targets.append(db.collection(ADMIN_REQUESTS).document(user.uid))

        for target in targets:
            self._subscriptions.append(Subscription(target, self._refresh))

    def _refresh(self, _snapshots):
        # Resolve and publish under one lock; an older state must never follow a newer one
        with self._lock:
            state = self.resolver.resolve_state(self.user)
            if state == self._last:
                return
            self._last = state
            self._listener(state)

    def cancel(self):
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
