from .crypto_service_port import CryptoServicePort
from .identity_port import IdentityListener, IdentityProvider
from .notifier_port import NotifierPort

__all__ = [
    "CryptoServicePort",
    "IdentityListener",
    "IdentityProvider",
    "NotifierPort",
]
