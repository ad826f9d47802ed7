"""Infrastructure Layer - adapters for the domain ports.

Components:
    services/: InMemoryCryptoService (CryptoServicePort)
    market_data/: CoinGecko client with cache and retry
    identity/: SessionIdentityProvider (IdentityProvider)
    notifications/: LoggingNotifier (NotifierPort)
    messaging/: EventBus
"""
