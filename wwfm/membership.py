"""Stripe membership webhooks: keep Cosmic ``users`` in step with subscriptions."""

import json
import logging
from datetime import UTC, datetime

import stripe

from config import settings
from wwfm import cosmic_client
from wwfm.exceptions import ConfigError, WebhookSignatureError

logger = logging.getLogger(__name__)

USER_TYPE = "users"


def create_checkout_session(email: str, first_name: str, last_name: str,
                            user_id: str = "") -> str:
    """Start a subscription checkout for a member and return the hosted checkout URL.

    An existing Stripe customer with the same email is reused.

    Raises:
        ConfigError: If the Stripe secret key or price id is missing.
        stripe.StripeError: If a Stripe call fails.
    """
    if not settings.stripe_secret_key:
        raise ConfigError("Stripe not configured")
    if not settings.stripe_price_id:
        raise ConfigError("No STRIPE_PRICE_ID configured")
    api_key = settings.stripe_secret_key

    existing = stripe.Customer.list(email=email, limit=1, api_key=api_key)
    if existing.data:
        customer = existing.data[0]
    else:
        customer = stripe.Customer.create(
            email=email,
            name=f"{first_name} {last_name}",
            metadata={"userId": user_id, "firstName": first_name, "lastName": last_name},
            api_key=api_key,
        )
        logger.info("Created Stripe customer %s for %s", customer.id, email)

    base = settings.base_url.rstrip("/")
    session = stripe.checkout.Session.create(
        customer=customer.id,
        payment_method_types=["card"],
        line_items=[{"price": settings.stripe_price_id, "quantity": 1}],
        mode="subscription",
        success_url=f"{base}/membership/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/membership",
        metadata={"userId": user_id, "firstName": first_name, "lastName": last_name, "email": email},
        api_key=api_key,
    )
    logger.info("Created checkout session %s for %s", session.id, email)
    return session.url


def verify_event(payload: bytes, signature: str | None) -> dict:
    """Verify a webhook body against its ``stripe-signature`` header.

    Returns:
        The event as a plain dict.

    Raises:
        ConfigError: If no webhook secret is configured.
        WebhookSignatureError: If the payload or signature is invalid.
    """
    if not settings.stripe_webhook_secret:
        raise ConfigError("No STRIPE_WEBHOOK_SECRET configured")
    if not signature:
        raise WebhookSignatureError("Missing stripe-signature header")
    try:
        stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise WebhookSignatureError(f"Webhook signature verification failed: {e}") from e
    return json.loads(payload)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _period_end(subscription) -> str | None:
    end = subscription.get("current_period_end")
    if not end:
        return None
    return datetime.fromtimestamp(end, UTC).isoformat()


def _find_user(field: str, value: str | None) -> dict | None:
    if not value:
        return None
    users, _ = cosmic_client.find_objects(
        USER_TYPE, query={f"metadata.{field}": value}, props="id,title,metadata", limit=1,
        status="any",
    )
    if not users:
        logger.warning("No user found with %s=%s", field, value)
        return None
    return users[0]


def _update_user(user_id: str, metadata: dict) -> None:
    cosmic_client.update_object(user_id, {"metadata": metadata})


def handle_checkout_session_completed(session) -> None:
    logger.info("Checkout session completed: %s", session.get("id"))
    user_id = (session.get("metadata") or {}).get("userId")
    if not user_id:
        logger.warning("Checkout session %s has no userId in metadata", session.get("id"))
        return
    _update_user(user_id, {
        "stripe_customer_id": session.get("customer"),
        "subscription_status": "active",
        "subscription_start_date": _now(),
    })
    logger.info("Updated user %s with subscription info", user_id)


def handle_subscription_created(subscription) -> None:
    logger.info("Subscription created: %s", subscription.get("id"))
    user = _find_user("stripe_customer_id", subscription.get("customer"))
    if user is None:
        return
    _update_user(user["id"], {
        "stripe_subscription_id": subscription.get("id"),
        "subscription_status": subscription.get("status"),
        "subscription_current_period_end": _period_end(subscription),
    })
    logger.info("Updated user %s with subscription %s", user["id"], subscription.get("id"))


def handle_subscription_updated(subscription) -> None:
    logger.info("Subscription updated: %s", subscription.get("id"))
    user = _find_user("stripe_subscription_id", subscription.get("id"))
    if user is None:
        return
    _update_user(user["id"], {
        "subscription_status": subscription.get("status"),
        "subscription_current_period_end": _period_end(subscription),
    })
    logger.info("Updated user %s subscription status to %s", user["id"], subscription.get("status"))


def handle_subscription_deleted(subscription) -> None:
    logger.info("Subscription deleted: %s", subscription.get("id"))
    user = _find_user("stripe_subscription_id", subscription.get("id"))
    if user is None:
        return
    _update_user(user["id"], {
        "subscription_status": "cancelled",
        "subscription_cancelled_at": _now(),
    })
    logger.info("Cancelled subscription for user %s", user["id"])


def handle_payment_succeeded(invoice) -> None:
    logger.info("Payment succeeded: %s", invoice.get("id"))
    user = _find_user("stripe_subscription_id", invoice.get("subscription"))
    if user is None:
        return
    _update_user(user["id"], {"subscription_status": "active", "last_payment_date": _now()})


def handle_payment_failed(invoice) -> None:
    logger.info("Payment failed: %s", invoice.get("id"))
    user = _find_user("stripe_subscription_id", invoice.get("subscription"))
    if user is None:
        return
    _update_user(user["id"], {"subscription_status": "past_due", "last_payment_failed_date": _now()})


HANDLERS = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_created,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_payment_succeeded,
    "invoice.payment_failed": handle_payment_failed,
}


def handle_event(event) -> bool:
    """Dispatch a verified event to its handler.

    Returns:
        True if the event type was handled, False if it was ignored.

    Raises:
        CosmicAPIError: If updating the user fails.
    """
    event_type = event["type"]
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("Unhandled event type: %s", event_type)
        return False
    handler(event["data"]["object"])
    return True
