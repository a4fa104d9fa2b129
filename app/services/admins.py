import logging
from typing import Dict, List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition

from app.core.errors import BadRequest, InvalidTransition, NotFoundError, ProtectedGrantError, backend_error
from app.core.rbac import Action
from app.db.collections import ADMINS, ADMINS_BY_EMAIL, email_key
from app.models.admin import AdminGrant, Role, grant_role
from app.models.user import CurrentUser
from app.services.access import AuthorizationResolver
from app.services.audit import log_activity

logger = logging.getLogger("darbar.admins")

# Grant collections addressable through the API
KINDS = {"uid": ADMINS, "email": ADMINS_BY_EMAIL}


def _to_grant(doc) -> AdminGrant:
    data = doc.to_dict() or {}
    data["role"] = grant_role(data)
    return AdminGrant.model_validate({**data, "id": doc.id})


class AdminGrantService:
    def __init__(self, db, resolver: AuthorizationResolver):
        self.db = db
        self.resolver = resolver

    def _ref(self, kind: str, key: str):
        if kind not in KINDS:
            raise NotFoundError("Unknown admin collection")
        return self.db.collection(KINDS[kind]).document(email_key(key) if kind == "email" else key)

    def _existing(self, ref):
        try:
            snap = ref.get()
        except Exception as e:
            raise backend_error(e, f"Reading grant {ref.id}")
        if not snap.exists:
            raise NotFoundError("Admin not found")
        return snap

    async def invite(self, actor: CurrentUser, email: Optional[str] = None, uid: Optional[str] = None) -> Dict[str, bool]:
        """Grants plain admin access by email, by uid, or both."""
        level = self.resolver.require(actor, Action.INVITE_ADMIN)
        if not email and not uid:
            raise BadRequest("Provide email or UID.")

        grant = {"role": Role.ADMIN.value, "invitedBy": actor.uid, "createdAt": firestore.SERVER_TIMESTAMP}
        targets = []
        if email:
            targets.append(self.db.collection(ADMINS_BY_EMAIL).document(email_key(email)))
        if uid:
            targets.append(self.db.collection(ADMINS).document(uid))

        try:
            for ref in targets:
                snap = ref.get()
                # An invite never demotes an existing super admin
                if snap.exists and grant_role(snap.to_dict()) == Role.SUPER_ADMIN:
                    raise InvalidTransition(f"{ref.id} is already a super admin")
            batch = self.db.batch()
            for ref in targets:
                data = dict(grant)
                if email:
                    data["email"] = email_key(email)
                batch.set(ref, data)
            batch.commit()
        except InvalidTransition:
            raise
        except Exception as e:
            raise backend_error(e, "Inviting admin")

        target = email_key(email) if email else uid
        logger.info(f"{actor.uid} invited admin {target}")
        await log_activity(self.db, actor, level.role, "INVITE_ADMIN", target, f"email={bool(email)} uid={bool(uid)}")
        return {"byEmail": bool(email), "byUid": bool(uid)}

    def list_admins(self, actor: CurrentUser) -> Dict[str, List[AdminGrant]]:
        self.resolver.require(actor, Action.MANAGE_ADMINS)
        try:
            return {
                "admins": [_to_grant(doc) for doc in self.db.collection(ADMINS).stream()],
                "byEmail": [_to_grant(doc) for doc in self.db.collection(ADMINS_BY_EMAIL).stream()],
            }
        except Exception as e:
            raise backend_error(e, "Listing admins")

    async def set_role(self, actor: CurrentUser, kind: str, key: str, role: Role) -> AdminGrant:
        """Promotes or demotes an existing grant. Other fields are kept."""
        level = self.resolver.require(actor, Action.MANAGE_ADMINS)
        ref = self._ref(kind, key)
        self._existing(ref)
        try:
            # `super` is the legacy flag; clear it so demotion sticks
            ref.set({"role": role.value, "super": firestore.DELETE_FIELD}, merge=True)
            updated = ref.get()
        except Exception as e:
            raise backend_error(e, f"Updating role of {ref.id}")

        logger.info(f"{actor.uid} set role of {kind}:{ref.id} to {role.value}")
        await log_activity(self.db, actor, level.role, "UPDATE_ROLE", ref.id, f"Changed role to {role.value}")
        return _to_grant(updated)

    async def remove(self, actor: CurrentUser, kind: str, key: str):
        """Deletes a plain admin grant. Super admin grants must be demoted first."""
        level = self.resolver.require(actor, Action.REMOVE_ADMIN)
        ref = self._ref(kind, key)
        snap = self._existing(ref)
        if grant_role(snap.to_dict()) == Role.SUPER_ADMIN:
            raise ProtectedGrantError()

        try:
            ref.delete(option=self.db.write_option(last_update_time=snap.update_time))
        except FailedPrecondition:
            # Promoted or changed since we read it
            raise InvalidTransition("This admin changed while you were editing. Reload and try again.")
        except Exception as e:
            raise backend_error(e, f"Removing admin {ref.id}")

        logger.info(f"{actor.uid} removed admin {kind}:{ref.id}")
        await log_activity(self.db, actor, level.role, "REMOVE_ADMIN", ref.id)
