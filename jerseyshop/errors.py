"""
Erreurs métier de la boutique.
Chaque erreur porte son code HTTP; les handlers (app_setup/exceptions.py)
les rendent en JSON {"error": message}.
"""
from typing import Any, Optional


class StoreError(Exception):
    status_code = 500
    default_message = "Erreur interne"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(StoreError):
    status_code = 400
    default_message = "Requête invalide"


class NotFound(StoreError):
    status_code = 404
    default_message = "Ressource introuvable"


class ProductNotFound(NotFound):
    def __init__(self, product_id: Any):
        self.product_id = product_id
        super().__init__(f"Produit {product_id} introuvable")


class OrderNotFound(NotFound):
    default_message = "Commande introuvable"


class PaymentNotFound(NotFound):
    default_message = "Paiement introuvable"


class Forbidden(StoreError):
    status_code = 403
    default_message = "Accès interdit à cette commande"


class Conflict(StoreError):
    status_code = 409
    default_message = "Conflit"


class InsufficientInventory(Conflict):
    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f"Stock insuffisant pour {product_name}")


class InvalidState(Conflict):
    default_message = "La commande n'est pas en attente de paiement"


class InvalidTransition(Conflict):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transition de statut interdite: {current} -> {target}")


class DuplicateSku(Conflict):
    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU déjà utilisé: {sku}")


class InvalidSignature(StoreError):
    status_code = 400
    default_message = "Signature invalide"


class ProviderError(StoreError):
    """Échec côté prestataire (réseau, identifiants, refus API). Le détail reste dans les logs."""
    status_code = 500
    default_message = "Échec de création du paiement"
