"""A token ledger: state storage, Ed25519 authorisation, actions, order book and genesis."""

__version__ = "0.0.1"