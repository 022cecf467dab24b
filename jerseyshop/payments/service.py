"""
Cas d'usage 'payments': orchestre commandes, repository paiements et adaptateurs prestataires.

Règles communes:
- Un paiement n'est initié que pour une commande existante, appartenant à l'appelant, encore 'pending'
- Le montant débité est toujours le total figé de la commande
- Paiement 'completed' => commande 'processing' (sans effet si déjà au-delà)
- Un paiement 'completed' ou 'refunded' n'est jamais rétrogradé par un événement tardif
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jerseyshop.cart import service as cart_service
from jerseyshop.config import (
    CURRENCY,
    PAYMENT_RECONCILE_AFTER_MINUTES,
    PAYPAL_CANCEL_URL,
    PAYPAL_RETURN_URL,
)
from jerseyshop.errors import (
    Forbidden,
    InvalidState,
    OrderNotFound,
    PaymentNotFound,
    ProviderError,
    ValidationFailed,
)
from jerseyshop.infra.database import transaction
from jerseyshop.orders import repository as orders_repository
from jerseyshop.orders import service as orders_service
from jerseyshop.orders.models import Order, OrderStatus
from jerseyshop.payments import paypal_client, repository, square_client, stripe_client
from jerseyshop.payments.details import (
    PayPalDetails,
    SquareDetails,
    StripeDetails,
    dump_details,
    merge_details,
    parse_details,
)
from jerseyshop.payments.models import Payment, PaymentMethod, PaymentStatus, payment_to_dict
from jerseyshop.payments.webhooks import (
    COMPLETED,
    FAILED,
    PAYPAL_ORDER_STATUSES,
    SQUARE_OUTCOMES,
    STRIPE_INTENT_STATUSES,
    ProviderEvent,
    parse_order_id,
)
from jerseyshop.utils.formatting import as_float, money_str, to_decimal, to_minor_units
from jerseyshop.utils.security import is_admin

logger = logging.getLogger(__name__)


# --- Préconditions ---

def load_payable_order(db: Session, order_id: int, user: Dict[str, Any]) -> Order:
    order = orders_repository.get_order(db, order_id)
    if not order:
        raise OrderNotFound()
    if order.user_id != user["id"]:
        raise Forbidden()
    if OrderStatus(order.status) != OrderStatus.PENDING:
        raise InvalidState()
    return order


def check_amount(order: Order, amount: Any) -> None:
    """Le montant annoncé par le client doit être exactement le total de la commande."""
    try:
        announced = to_decimal(amount)
    except ValueError:
        raise ValidationFailed("Montant invalide")
    if announced != to_decimal(order.total_price):
        raise ValidationFailed("Le montant ne correspond pas au total de la commande")


def _attempt(db: Session, order: Order, method: PaymentMethod) -> Payment:
    """Réutilise le paiement 'pending' créé avec la commande, sinon ouvre une nouvelle tentative."""
    payment = repository.find_placeholder(db, order.id, method)
    if payment:
        return payment
    return repository.insert_payment(db, order_id=order.id, method=method, amount=order.total_price)


# --- Initiation par prestataire ---

def _start_stripe(db: Session, order: Order, user: Dict[str, Any]) -> Dict[str, Any]:
    intent = stripe_client.create_payment_intent(
        amount=to_minor_units(order.total_price),
        currency=CURRENCY,
        metadata={"orderId": str(order.id), "userId": str(user["id"])},
    )
    details = StripeDetails(client_secret=intent["client_secret"], intent_status=intent["status"])
    with transaction(db):
        payment = _attempt(db, order, PaymentMethod.STRIPE)
        repository.update_payment(db, payment, transaction_id=intent["id"], details=dump_details(details))
    logger.info("payments.stripe intent=%s order=%s payment=%s", intent["id"], order.id, payment.id)
    return {
        "clientSecret": intent["client_secret"],
        "paymentIntentId": intent["id"],
        "paymentId": payment.id,
    }


def _start_paypal(
    db: Session,
    order: Order,
    return_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, Any]:
    created = paypal_client.create_order(
        order_id=order.id,
        amount=money_str(order.total_price),
        currency=CURRENCY,
        return_url=return_url or PAYPAL_RETURN_URL,
        cancel_url=cancel_url or PAYPAL_CANCEL_URL,
    )
    details = PayPalDetails(order_status=created["status"], approval_url=created["approval_url"])
    with transaction(db):
        payment = _attempt(db, order, PaymentMethod.PAYPAL)
        repository.update_payment(db, payment, transaction_id=created["id"], details=dump_details(details))
    logger.info("payments.paypal order=%s paypal_order=%s payment=%s", order.id, created["id"], payment.id)
    return {
        "orderId": created["id"],
        "approvalUrl": created["approval_url"],
        "paymentId": payment.id,
    }


def _start_square(
    db: Session,
    order: Order,
    source_id: Optional[str],
    location_id: Optional[str] = None,
) -> Dict[str, Any]:
    if not source_id:
        raise ValidationFailed("sourceId requis pour un paiement Square")
    result = square_client.create_payment(
        order_id=order.id,
        amount=to_minor_units(order.total_price),
        currency=CURRENCY,
        source_id=source_id,
        location_id=location_id,
    )
    details = SquareDetails(square_status=result["status"], receipt_url=result["receipt_url"])
    completed = result["status"] == "COMPLETED"
    with transaction(db):
        payment = _attempt(db, order, PaymentMethod.SQUARE)
        repository.update_payment(
            db,
            payment,
            status=PaymentStatus.COMPLETED if completed else None,
            transaction_id=result["id"],
            details=dump_details(details),
        )
        if completed:
            orders_service.mark_processing(db, order.id)
    logger.info("payments.square payment=%s status=%s order=%s", result["id"], result["status"], order.id)
    return {
        "paymentId": result["id"],
        "status": result["status"],
        "receiptUrl": result["receipt_url"],
        "dbPaymentId": payment.id,
    }


def initiate_payment(
    db: Session,
    order_id: int,
    user: Dict[str, Any],
    method: PaymentMethod,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Lance le paiement d'une commande 'pending' chez le prestataire choisi.
    details: returnUrl/cancelUrl (PayPal), sourceId/locationId (Square)
    """
    order = load_payable_order(db, order_id, user)
    details = details or {}
    method = PaymentMethod(method)
    if method == PaymentMethod.STRIPE:
        return _start_stripe(db, order, user)
    if method == PaymentMethod.PAYPAL:
        return _start_paypal(db, order, details.get("returnUrl"), details.get("cancelUrl"))
    return _start_square(db, order, details.get("sourceId"), details.get("locationId"))


def create_stripe_intent(db: Session, order_id: int, amount: Any, user: Dict[str, Any]) -> Dict[str, Any]:
    order = load_payable_order(db, order_id, user)
    check_amount(order, amount)
    return _start_stripe(db, order, user)


def create_paypal_order(
    db: Session,
    order_id: int,
    amount: Any,
    user: Dict[str, Any],
    return_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, Any]:
    order = load_payable_order(db, order_id, user)
    check_amount(order, amount)
    return _start_paypal(db, order, return_url, cancel_url)


def create_square_payment(
    db: Session,
    order_id: int,
    amount: Any,
    user: Dict[str, Any],
    source_id: Optional[str],
    location_id: Optional[str] = None,
) -> Dict[str, Any]:
    order = load_payable_order(db, order_id, user)
    check_amount(order, amount)
    return _start_square(db, order, source_id, location_id)


def checkout(
    db: Session,
    user: Dict[str, Any],
    *,
    method: PaymentMethod,
    order_id: Optional[int] = None,
    cart_items: Optional[list] = None,
    shipping_address: Optional[Dict[str, Any]] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Paiement en une étape.
    - orderId fourni: paie la commande existante
    - sinon: crée la commande depuis cartItems + shippingAddress, vide le panier, puis paie
    """
    method = PaymentMethod(method)
    if order_id is None:
        if not cart_items or not shipping_address:
            raise ValidationFailed("cartItems et shippingAddress sont requis sans orderId")
        order = orders_service.create_order(db, user["id"], cart_items, shipping_address)
        order_id = order.id
        cart_service.clear_cart(db, user["id"])
    result = initiate_payment(db, order_id, user, method, details)
    order = orders_repository.get_order(db, order_id)
    return {
        "success": True,
        "orderId": order_id,
        "amount": as_float(order.total_price),
        "paymentMethod": method.value,
        **result,
    }


# --- Application d'un résultat (webhook, capture, balayage) ---

def _complete(db: Session, payment: Payment, transaction_id: Optional[str] = None, **details: Any) -> bool:
    if PaymentStatus(payment.status) in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        # Rejeu: les champs sont déjà posés, on s'assure seulement de la commande
        orders_service.mark_processing(db, payment.order_id)
        return False
    repository.update_payment(
        db,
        payment,
        status=PaymentStatus.COMPLETED,
        transaction_id=transaction_id,
        details=merge_details(payment.payment_details, PaymentMethod(payment.payment_method).value, **details),
    )
    orders_service.mark_processing(db, payment.order_id)
    return True


def _fail(db: Session, payment: Payment, transaction_id: Optional[str] = None, **details: Any) -> bool:
    if PaymentStatus(payment.status) != PaymentStatus.PENDING:
        return False
    repository.update_payment(
        db,
        payment,
        status=PaymentStatus.FAILED,
        transaction_id=transaction_id,
        details=merge_details(payment.payment_details, PaymentMethod(payment.payment_method).value, **details),
    )
    return True


def apply_outcome(db: Session, payment: Payment, outcome: Optional[str], transaction_id: Optional[str] = None, **details: Any) -> bool:
    """Retourne True si le paiement a changé de statut. La commande n'est jamais touchée sur échec."""
    if outcome == COMPLETED:
        return _complete(db, payment, transaction_id, **details)
    if outcome == FAILED:
        return _fail(db, payment, transaction_id, **details)
    return False


def capture_paypal(db: Session, paypal_order_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Capture d'une commande PayPal approuvée par l'acheteur.
    Paiement local introuvable -> 404, commande d'un autre utilisateur -> 403 (avant toute capture),
    paiement déjà complété (webhook) -> succès sans nouvel appel, capture non 'COMPLETED' -> 400.
    """
    payment = repository.find_by_transaction(db, paypal_order_id, PaymentMethod.PAYPAL)
    if not payment:
        raise PaymentNotFound()
    order = orders_repository.get_order(db, payment.order_id)
    if not order:
        raise OrderNotFound()
    if order.user_id != user["id"] and not is_admin(user):
        raise Forbidden()

    if PaymentStatus(payment.status) in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        # Webhook arrivé avant le retour de l'acheteur: PayPal refuserait une seconde capture
        capture_id = parse_details(payment.payment_details, PaymentMethod.PAYPAL.value).capture_id
        logger.info("payments.capture_paypal déjà capturée order=%s paypal_order=%s", order.id, paypal_order_id)
        return {"success": True, "captureId": capture_id, "status": "COMPLETED"}

    result = paypal_client.capture_order(paypal_order_id)
    if result["status"] != "COMPLETED":
        raise ValidationFailed(f"Capture PayPal non complétée (status={result['status']})")

    join_key = parse_order_id(result["custom_id"] or result["invoice_id"])
    if join_key is not None and join_key != order.id:
        logger.warning(
            "payments.capture_paypal custom_id=%s différent de la commande locale=%s paypal_order=%s",
            join_key, order.id, paypal_order_id,
        )

    with transaction(db):
        apply_outcome(
            db,
            payment,
            COMPLETED,
            paypal_order_id,
            capture_id=result["capture_id"],
            order_status=result["status"],
        )
    logger.info("payments.capture_paypal order=%s capture=%s", order.id, result["capture_id"])
    return {"success": True, "captureId": result["capture_id"], "status": result["status"]}


def _match_payment(db: Session, event: ProviderEvent) -> Optional[Payment]:
    candidates = [
        p for p in repository.find_by_order(db, event.order_id)
        if PaymentMethod(p.payment_method) == event.provider
    ]
    for payment in candidates:
        if event.transaction_id and payment.transaction_id == event.transaction_id:
            return payment
    # PayPal sans related_ids: resource.id est l'id de capture déjà enregistré
    if event.provider == PaymentMethod.PAYPAL and event.transaction_id:
        for payment in candidates:
            if parse_details(payment.payment_details, "paypal").capture_id == event.transaction_id:
                return payment
    return None


def reconcile_provider_event(db: Session, event: ProviderEvent) -> Dict[str, Any]:
    """
    Applique un événement webhook déjà authentifié.
    - Événement déjà vu (provider, event_id): acquitté sans retraitement
    - Aucune commande/paiement correspondant: acquitté, journalisé en warning
    """
    try:
        with transaction(db):
            if event.event_id and not repository.record_webhook_event(db, event.provider, event.event_id, event.event_type):
                logger.info("payments.webhook doublon provider=%s event=%s", event.provider.value, event.event_id)
                return {"received": True, "duplicate": True}
            if event.outcome is None:
                return {"received": True}
            if event.order_id is None:
                logger.warning("payments.webhook sans clé de jointure provider=%s type=%s", event.provider.value, event.event_type)
                return {"received": True}
            payment = _match_payment(db, event)
            if not payment:
                logger.warning(
                    "payments.webhook paiement introuvable provider=%s order=%s transaction=%s",
                    event.provider.value, event.order_id, event.transaction_id,
                )
                return {"received": True}
            changed = apply_outcome(db, payment, event.outcome, event.transaction_id, **event.details)
    except IntegrityError:
        # Même événement livré deux fois en parallèle: l'autre livraison l'a traité
        logger.info("payments.webhook doublon concurrent provider=%s event=%s", event.provider.value, event.event_id)
        return {"received": True, "duplicate": True}
    logger.info(
        "payments.webhook provider=%s type=%s order=%s outcome=%s changed=%s",
        event.provider.value, event.event_type, event.order_id, event.outcome, changed,
    )
    return {"received": True}


# --- Opérations admin ---

def refund_payment(db: Session, payment_id: int, amount: Any = None) -> Dict[str, Any]:
    """
    Rembourse un paiement 'completed' chez son prestataire (total par défaut, partiel si amount).
    Le paiement passe 'refunded' et garde refund_id dans ses détails.
    """
    payment = repository.get_payment(db, payment_id)
    if not payment:
        raise PaymentNotFound()
    if PaymentStatus(payment.status) != PaymentStatus.COMPLETED:
        raise InvalidState("Seuls les paiements complétés peuvent être remboursés")

    total = to_decimal(payment.amount)
    partial = amount is not None
    try:
        refund_amount = to_decimal(amount) if partial else total
    except ValueError:
        raise ValidationFailed("Montant de remboursement invalide")
    if refund_amount <= Decimal("0") or refund_amount > total:
        raise ValidationFailed("Montant de remboursement invalide")

    method = PaymentMethod(payment.payment_method)
    if method == PaymentMethod.STRIPE:
        refund = stripe_client.create_refund(
            payment.transaction_id, to_minor_units(refund_amount) if partial else None
        )
    elif method == PaymentMethod.PAYPAL:
        capture_id = parse_details(payment.payment_details, method.value).capture_id
        if not capture_id:
            raise InvalidState("Aucune capture PayPal enregistrée pour ce paiement")
        refund = paypal_client.refund_capture(
            capture_id, money_str(refund_amount) if partial else None, CURRENCY
        )
    else:
        refund = square_client.refund_payment(payment.transaction_id, to_minor_units(refund_amount), CURRENCY)

    with transaction(db):
        repository.update_payment(
            db,
            payment,
            status=PaymentStatus.REFUNDED,
            details=merge_details(payment.payment_details, method.value, refund_id=refund["id"]),
        )
    logger.info("payments.refund payment=%s provider=%s amount=%s refund=%s", payment_id, method.value, refund_amount, refund["id"])
    db.refresh(payment)
    return payment_to_dict(payment)


def _provider_outcome(payment: Payment):
    """Interroge le prestataire: (outcome, champs de détails) pour un paiement resté 'pending'."""
    method = PaymentMethod(payment.payment_method)
    if method == PaymentMethod.STRIPE:
        intent = stripe_client.retrieve_payment_intent(payment.transaction_id)
        outcome = STRIPE_INTENT_STATUSES.get(intent["status"])
        return outcome, {"intent_status": intent["status"]}
    if method == PaymentMethod.PAYPAL:
        found = paypal_client.get_order(payment.transaction_id)
        outcome = PAYPAL_ORDER_STATUSES.get(found["status"])
        return outcome, {"order_status": found["status"], "capture_id": found["capture_id"]}
    found = square_client.get_payment(payment.transaction_id)
    outcome = SQUARE_OUTCOMES.get(found["status"])
    return outcome, {"square_status": found["status"], "receipt_url": found["receipt_url"]}


def reconcile_pending_payments(db: Session, older_than_minutes: Optional[int] = None) -> Dict[str, int]:
    """
    Balayage: rattrape les webhooks perdus pour les paiements 'pending' transmis au prestataire.
    Chaque paiement est traité dans sa propre transaction; une erreur prestataire n'arrête pas le balayage.
    """
    minutes = PAYMENT_RECONCILE_AFTER_MINUTES if older_than_minutes is None else older_than_minutes
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    summary = {"checked": 0, "completed": 0, "failed": 0, "unchanged": 0, "errors": 0}

    for payment in repository.list_stale_pending(db, cutoff):
        summary["checked"] += 1
        try:
            outcome, details = _provider_outcome(payment)
        except ProviderError:
            summary["errors"] += 1
            continue
        with transaction(db):
            changed = apply_outcome(db, payment, outcome, None, **details)
        if changed and outcome == COMPLETED:
            summary["completed"] += 1
        elif changed and outcome == FAILED:
            summary["failed"] += 1
        else:
            summary["unchanged"] += 1

    logger.info("payments.reconcile %s", summary)
    return summary
