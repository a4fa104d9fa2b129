import logging
from typing import List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists, FailedPrecondition

from app.core.errors import InvalidTransition, NotFoundError, AccessDenied, backend_error
from app.core.rbac import Action, check_permission
from app.db.collections import ADMIN_REQUESTS, ADMINS, ADMINS_BY_EMAIL, email_key
from app.models.admin import AdminRequest, AdminRequestProfile, RequestStatus, Role
from app.models.user import CurrentUser
from app.services.access import AccessLevel, AuthorizationResolver
from app.services.audit import log_activity

logger = logging.getLogger("darbar.requests")

TERMINAL = (RequestStatus.APPROVED, RequestStatus.REJECTED)


def _to_request(snap) -> AdminRequest:
    data = snap.to_dict() or {}
    data.setdefault("uid", snap.id)
    return AdminRequest.model_validate(data)


class AdminRequestService:
    """
    One request per user at admin_requests/{uid}:
    pending -> approved | rejected, both terminal.
    """

    def __init__(self, db, resolver: AuthorizationResolver):
        self.db = db
        self.resolver = resolver

    def _ref(self, uid: str):
        return self.db.collection(ADMIN_REQUESTS).document(uid)

    def _read(self, uid: str):
        try:
            return self._ref(uid).get()
        except Exception as e:
            raise backend_error(e, f"Reading admin request {uid}")

    def get(self, uid: str) -> Optional[AdminRequest]:
        snap = self._read(uid)
        return _to_request(snap) if snap.exists else None

    async def submit_request(self, user: CurrentUser, profile: AdminRequestProfile,
                             email: Optional[str] = None) -> Tuple[AdminRequest, bool]:
        """
        Writes the caller's pending request. Re-submitting a pending request
        overwrites it; a reviewed request cannot be reopened.
        Returns the stored request and whether it did not exist before.
        """
        existing = self._read(user.uid)
        if existing.exists and (existing.to_dict() or {}).get("status") in TERMINAL:
            raise InvalidTransition("Your admin request has already been reviewed")

        address = email or user.email
        data = {
            "uid": user.uid,
            "email": address.lower() if address else None,
            "firstName": profile.first_name,
            "middleName": profile.middle_name,
            "lastName": profile.last_name,
            "phone": profile.phone,
            "dob": profile.dob,
            "status": RequestStatus.PENDING.value,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }
        ref = self._ref(user.uid)
        try:
            if existing.exists:
                ref.update(data, option=self.db.write_option(last_update_time=existing.update_time))
            else:
                ref.create(data)
        except (FailedPrecondition, AlreadyExists):
            # Reviewed or re-filed after we read it
            raise InvalidTransition("Your admin request changed meanwhile. Please reload and try again.")
        except Exception as e:
            raise backend_error(e, f"Submitting admin request for {user.uid}")

        logger.info(f"Admin request submitted by {user.uid}")
        return self.get(user.uid), not existing.exists

    def list_pending(self, actor: CurrentUser) -> List[AdminRequest]:
        self.resolver.require(actor, Action.REVIEW_REQUESTS)
        try:
            docs = self.db.collection(ADMIN_REQUESTS)\
                       .where("status", "==", RequestStatus.PENDING.value)\
                       .order_by("createdAt", direction="DESCENDING")\
                       .stream()
            return [_to_request(doc) for doc in docs]
        except Exception as e:
            raise backend_error(e, "Listing admin requests")

    def _pending_snapshot(self, request_id: str):
        snap = self._read(request_id)
        if not snap.exists:
            raise NotFoundError("Admin request not found")
        if (snap.to_dict() or {}).get("status") != RequestStatus.PENDING.value:
            raise InvalidTransition("This request has already been reviewed")
        return snap

    def _commit(self, batch, request_id: str, operation: str):
        try:
            batch.commit()
        except FailedPrecondition:
            # Another reviewer changed the request after we read it
            raise InvalidTransition("This request has already been reviewed")
        except Exception as e:
            raise backend_error(e, f"{operation} admin request {request_id}")

    async def approve(self, request_id: str, role: Role, actor: CurrentUser) -> AdminRequest:
        """
        Grants `role` to the requester and marks the request approved, all in one
        write batch guarded by the request's last update time.
        """
        level: AccessLevel = self.resolver.require(actor, Action.REVIEW_REQUESTS)
        if role == Role.SUPER_ADMIN and not check_permission(level.role, Action.GRANT_SUPER_ADMIN):
            raise AccessDenied("Only super admins can grant super admin access")

        snap = self._pending_snapshot(request_id)
        request = snap.to_dict()
        target_uid = request.get("uid") or snap.id
        email = request.get("email")

        grant = {
            "role": role.value,
            "approvedBy": actor.uid,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }
        if email:
            grant["email"] = email_key(email)

        batch = self.db.batch()
        batch.set(self.db.collection(ADMINS).document(target_uid), grant)
        if email:
            batch.set(self.db.collection(ADMINS_BY_EMAIL).document(email_key(email)), grant)
        batch.update(
            self._ref(request_id),
            {
                "status": RequestStatus.APPROVED.value,
                "approvedBy": actor.uid,
                "approvedAt": firestore.SERVER_TIMESTAMP,
                "grantedRole": role.value,
            },
            option=self.db.write_option(last_update_time=snap.update_time),
        )
        self._commit(batch, request_id, "Approving")

        logger.info(f"{actor.uid} approved admin request {request_id} as {role.value}")
        await log_activity(self.db, actor, level.role, "APPROVE_ADMIN_REQUEST", request_id, f"Granted {role.value}")
        return self.get(request_id)

    async def reject(self, request_id: str, actor: CurrentUser) -> AdminRequest:
        level = self.resolver.require(actor, Action.REVIEW_REQUESTS)
        snap = self._pending_snapshot(request_id)

        batch = self.db.batch()
        batch.update(
            self._ref(request_id),
            {
                "status": RequestStatus.REJECTED.value,
                "rejectedBy": actor.uid,
                "rejectedAt": firestore.SERVER_TIMESTAMP,
            },
            option=self.db.write_option(last_update_time=snap.update_time),
        )
        self._commit(batch, request_id, "Rejecting")

        logger.info(f"{actor.uid} rejected admin request {request_id}")
        await log_activity(self.db, actor, level.role, "REJECT_ADMIN_REQUEST", request_id)
        return self.get(request_id)
