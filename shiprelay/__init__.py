"""Ship Relay: Shippo rates, Stripe checkout and label purchase."""

__version__ = "1.0.0"
