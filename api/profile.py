import json
from flask import Blueprint, current_app, request, jsonify
from helpers import get_current_user, get_json_body, is_authenticated
from usage import (
    check_story_limit,
    format_usage_text,
    get_user_plan_details,
    should_show_upgrade_prompt,
    should_show_usage_warning,
    upgrade_user_to_pro
)
import stripe

bp = Blueprint('profile', __name__)

UPGRADE_EVENTS = ("checkout.session.completed", "customer.subscription.created")

@bp.route('/api/user/plan', methods=["GET"])
@is_authenticated
def user_plan():
    details = get_user_plan_details(get_current_user().id)
    if details is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify(details)

@bp.route('/api/user/usage', methods=["GET"])
@is_authenticated
def user_usage():
    usage = check_story_limit(get_current_user().id)
    return jsonify(dict(
        usage.to_dict(),
        usageText=format_usage_text(usage),
        showUpgradePrompt=should_show_upgrade_prompt(usage),
        showUsageWarning=should_show_usage_warning(usage)
    ))

@bp.route('/api/checkout', methods=["POST"])
@is_authenticated
def create_checkout_session():
    """
	Creates a hosted checkout session for the pro plan.

    The price comes from `productId` in the body, or `STRIPE_PRICE_ID` when
    absent. The user's id, email and name travel in the session metadata so
    the webhook can find the account to upgrade once payment completes.

    Returns:
        Response: JSON with `checkoutUrl` and `checkoutId`; 400 when no price
        is configured, 500 if the payment provider rejects the request.
    """
    user = get_current_user()
    data = get_json_body()
    price_id = data.get("productId") or current_app.config.get("STRIPE_PRICE_ID")
    if not price_id:
        return jsonify({"error": "No product configured for checkout"}), 400

    base_url = (current_app.config.get("BASE_URL") or request.host_url).rstrip("/")
    mode = current_app.config.get("STRIPE_CHECKOUT_MODE", "payment")
    metadata = {
        "user_id": str(user.id),
        "user_email": user.email,
        "user_name": user.name or ""
    }
    params = {
        "api_key": current_app.config.get("STRIPE_SECRET_KEY"),
        "mode": mode,
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": f"{base_url}/success",
        "customer_email": user.email,
        "metadata": metadata
    }
    if mode == "subscription":
        params["subscription_data"] = {"metadata": metadata}
    try:
        session = stripe.checkout.Session.create(**params)
    except Exception as e:
        current_app.logger.error(f"Checkout creation failed for user {user.id}: {e}")
        return jsonify({"error": "Failed to create checkout session"}), 500
    return jsonify({"checkoutUrl": session.url, "checkoutId": session.id})

@bp.route('/api/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    """
	Handles incoming Stripe webhook events.

    The signature header is verified against `STRIPE_WEBHOOK_SECRET` before
    the payload is looked at. A completed checkout or a created subscription
    moves the user named in the event metadata to the pro plan; the upgrade
    sets absolute values, so a redelivered event changes nothing. Other events
    are acknowledged and ignored.

    Returns:
        tuple: ("", 200) once the signature is valid, even if processing fails;
        400 for an unreadable payload, a bad signature or a missing secret.
    """
    payload = request.get_data()
    sig_header = request.headers.get('Stripe-Signature')
    webhook_secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not webhook_secret:
        current_app.logger.error("STRIPE_WEBHOOK_SECRET is not configured; rejecting webhook")
        return jsonify({"error": "Webhook secret not configured"}), 400
    if not sig_header:
        return jsonify({"error": "Missing signature"}), 400
    try:
        stripe.WebhookSignature.verify_header(payload.decode("utf-8"), sig_header, webhook_secret)
    except (stripe.SignatureVerificationError, UnicodeDecodeError):
        return jsonify({"error": "Invalid signature"}), 400
    try:
        event = json.loads(payload)
    except ValueError:
        return jsonify({"error": "Invalid payload"}), 400
    if not isinstance(event, dict):
        return jsonify({"error": "Invalid payload"}), 400

    event_type = event.get("type")
    if event_type not in UPGRADE_EVENTS:
        current_app.logger.info(f"Ignoring webhook event {event_type}")
        return "", 200

    try:
        obj = event['data']['object']
        metadata = obj.get('metadata') or {}
        user_id = metadata.get('user_id')
        if not user_id:
            current_app.logger.warning(f"Webhook event {event_type} has no user_id in metadata")
            return "", 200
        if upgrade_user_to_pro(int(user_id), obj.get('customer')):
            current_app.logger.info(f"Upgraded user {user_id} to pro via {event_type}")
        else:
            current_app.logger.warning(f"Webhook event {event_type} names unknown user {user_id}")
    except Exception as e:
        current_app.logger.error(f"Failed to process webhook event {event_type}: {e}")
    return "", 200
