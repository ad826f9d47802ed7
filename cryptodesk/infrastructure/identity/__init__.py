from .session_identity import SessionIdentityProvider

__all__ = ["SessionIdentityProvider"]
