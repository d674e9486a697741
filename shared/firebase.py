"""
Adapters over the managed backend (Firebase).

`FirestoreDataStore` and `FirebasePushChannel` expose the same methods as the
in-memory `DataStore` and the mock `PushChannel`, so services never know which
backend they run against.

Document layout:
    users/{uid}                      profile, push settings under `fcmSettings`
    users/{uid}/notifications/{id}   in-app notifications
    orders/{orderId}
    mail/{id}                        picked up by the email-sending extension
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

import firebase_admin
from firebase_admin import auth, credentials, exceptions, firestore, messaging

from shared.channels import (
    INVALID_ARGUMENT,
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
    MulticastResult,
    PushMessage,
    SendResponse,
)
from shared.models import (
    FcmSettings,
    MailMessage,
    Order,
    UserNotification,
    UserProfile,
    UserRecord,
)

logger = logging.getLogger("firebase")

# send_each_for_multicast accepts at most this many tokens per call
MULTICAST_TOKEN_LIMIT = 500


def init_firebase_app(credentials_path: Optional[str] = None) -> firebase_admin.App:
    """
    Initialize the default Firebase app once and return it.

    Without a credentials path the SDK falls back to application default
    credentials, which is what a deployed function uses.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    cred = credentials.Certificate(credentials_path) if credentials_path else None
    app = firebase_admin.initialize_app(cred)
    logger.info(f"Firebase app initialized for project {app.project_id}")
    return app


def _to_user_record(record) -> UserRecord:
    return UserRecord(uid=record.uid, email=record.email or "", display_name=record.display_name)


class FirestoreDataStore:
    """Document store and identity lookups backed by Firestore and Firebase Auth."""

    def __init__(self, client=None, app: Optional[firebase_admin.App] = None):
        """
        Args:
            client: Firestore client (defaults to the app's client)
            app: Firebase app for auth calls (defaults to the default app)
        """
        self.app = app
        self.db = client if client is not None else firestore.client(app=app)

    # =========================================================================
    # Identity
    # =========================================================================

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            return _to_user_record(auth.get_user_by_email(email, app=self.app))
        except auth.UserNotFoundError:
            return None

    def get_user(self, uid: str) -> Optional[UserRecord]:
        try:
            return _to_user_record(auth.get_user(uid, app=self.app))
        except auth.UserNotFoundError:
            return None

    # =========================================================================
    # Profiles / push settings
    # =========================================================================

    def _user_ref(self, uid: str):
        return self.db.collection("users").document(uid)

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        snapshot = self._user_ref(uid).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        return UserProfile(
            uid=uid,
            fcm_settings=FcmSettings.model_validate(data.get("fcmSettings") or {}),
        )

    def _read_settings(self, uid: str) -> FcmSettings:
        profile = self.get_profile(uid)
        return profile.fcm_settings if profile else FcmSettings()

    def add_token(self, uid: str, token: str) -> FcmSettings:
        self._user_ref(uid).set(
            {"fcmSettings": {"tokens": firestore.ArrayUnion([token])}},
            merge=True,
        )
        return self._read_settings(uid)

    def set_notifications_enabled(self, uid: str, enabled: bool) -> FcmSettings:
        self._user_ref(uid).set(
            {"fcmSettings": {"notificationsEnabled": enabled}},
            merge=True,
        )
        return self._read_settings(uid)

    def remove_tokens(self, uid: str, tokens: Iterable[str]) -> None:
        """
        Remove tokens with a server-side array-remove.

        Never rewrites the list from a local copy, so removals made by
        concurrent invocations cannot undo each other.
        """
        doomed = list(dict.fromkeys(tokens))
        if not doomed:
            return
        self._user_ref(uid).update({"fcmSettings.tokens": firestore.ArrayRemove(doomed)})

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(self, order: Order) -> Order:
        ref = self.db.collection("orders").document()
        data = order.to_document()
        data["createdAt"] = firestore.SERVER_TIMESTAMP
        ref.set(data)
        logger.info(f"Order {ref.id} created for user {order.user_id}")
        return order.model_copy(update={"id": ref.id, "created_at": datetime.utcnow()})

    @staticmethod
    def _to_order(snapshot) -> Order:
        return Order.model_validate({**(snapshot.to_dict() or {}), "id": snapshot.id})

    def get_order(self, order_id: str) -> Optional[Order]:
        snapshot = self.db.collection("orders").document(order_id).get()
        if not snapshot.exists:
            return None
        return self._to_order(snapshot)

    def get_orders(self) -> list[Order]:
        return [self._to_order(s) for s in self.db.collection("orders").stream()]

    def get_orders_by_user(self, user_id: str) -> list[Order]:
        query = self.db.collection("orders").where(
            filter=firestore.FieldFilter("userId", "==", user_id)
        )
        return [self._to_order(s) for s in query.stream()]

    # =========================================================================
    # Mail and in-app notifications
    # =========================================================================

    def queue_mail(
        self,
        to: list[str],
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> MailMessage:
        ref = self.db.collection("mail").document()
        message = {"subject": subject, "html": html}
        if text is not None:
            message["text"] = text
        ref.set({"to": list(to), "message": message})
        return MailMessage(id=ref.id, to=list(to), subject=subject, html=html, text=text)

    def add_user_notification(
        self,
        uid: str,
        message: str,
        link: str = "/account",
    ) -> UserNotification:
        ref = self._user_ref(uid).collection("notifications").document()
        ref.set({
            "userId": uid,
            "message": message,
            "link": link,
            "read": False,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        return UserNotification(id=ref.id, user_id=uid, message=message, link=link)

    def get_user_notifications(self, uid: str) -> list[UserNotification]:
        snapshots = self._user_ref(uid).collection("notifications").stream()
        return [
            UserNotification.model_validate({**(s.to_dict() or {}), "id": s.id})
            for s in snapshots
        ]


def provider_error_code(exc: Exception) -> str:
    """
    Map an SDK exception for one token to a provider error code.

    FCM answers INVALID_ARGUMENT both for a malformed token and for a bad
    message (reserved data key, oversized payload). Only the former names
    the registration token; the latter fails every token alike and must not
    mark any of them dead.
    """
    if isinstance(exc, messaging.UnregisteredError):
        return REGISTRATION_TOKEN_NOT_REGISTERED
    if isinstance(exc, exceptions.InvalidArgumentError):
        if "registration token" in str(exc).lower():
            return INVALID_REGISTRATION_TOKEN
        return INVALID_ARGUMENT
    code = getattr(exc, "code", None) or "unknown-error"
    return "messaging/" + str(code).lower().replace("_", "-")


class FirebasePushChannel:
    """Multicast push delivery through Firebase Cloud Messaging."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    def _build_message(self, tokens: list[str], message: PushMessage) -> messaging.MulticastMessage:
        data = dict(message.data)
        if message.link:
            data.setdefault("link", message.link)
        fcm_options = None
        if message.link and message.link.startswith("https://"):
            fcm_options = messaging.WebpushFCMOptions(link=message.link)
        return messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=data or None,
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(icon=message.icon),
                fcm_options=fcm_options,
            ),
        )

    def send_multicast(self, tokens: list[str], message: PushMessage) -> MulticastResult:
        """
        Send one notification to every token.

        A single provider call covers up to MULTICAST_TOKEN_LIMIT tokens;
        longer lists are sent in consecutive batches. Errors for the call as
        a whole propagate.
        """
        responses: list[SendResponse] = []
        for start in range(0, len(tokens), MULTICAST_TOKEN_LIMIT):
            chunk = tokens[start:start + MULTICAST_TOKEN_LIMIT]
            batch = messaging.send_each_for_multicast(
                self._build_message(chunk, message), app=self.app
            )
            for token, resp in zip(chunk, batch.responses):
                if resp.success:
                    responses.append(SendResponse(
                        token=token, success=True, message_id=resp.message_id,
                    ))
                else:
                    responses.append(SendResponse(
                        token=token,
                        success=False,
                        error_code=provider_error_code(resp.exception),
                        error=str(resp.exception),
                    ))

        result = MulticastResult(responses=responses)
        logger.info(f"[FCM] {message.title} | {result.success_count}/{len(tokens)} delivered")
        return result
