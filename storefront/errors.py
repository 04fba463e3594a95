"""
Taxonomie des erreurs du checkout.

- ValidationError: panier vide, lignes mal formées -> visible (400), checkout annulé
- AuthError: identifiant absent/expiré -> visible (401), ré-authentification
- GatewayError: Stripe refuse ou est injoignable -> visible, pas de retry automatique
- VerificationError: lecture de session Stripe impossible -> visible (500)
- PersistenceError / NotificationError: journalisées, jamais remontées à l'utilisateur
"""


class CheckoutError(Exception):
    """Base des erreurs métier; status_code sert à la traduction HTTP dans les vues."""

    status_code = 500

    def __init__(self, message: str = "", *, detail: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        # détail technique (message Stripe/Supabase), exposé seulement en mode verbeux
        self.detail = detail


class ValidationError(CheckoutError):
    status_code = 400


class EmptyCartError(ValidationError):
    pass


class InvalidLineItemError(ValidationError):
    pass


class AuthError(CheckoutError):
    status_code = 401


class UnauthenticatedError(AuthError):
    pass


class GatewayError(CheckoutError):
    status_code = 500


class GatewayUnavailableError(GatewayError):
    status_code = 503


class VerificationError(CheckoutError):
    status_code = 500


class PersistenceError(CheckoutError):
    pass


class NotificationError(CheckoutError):
    pass
