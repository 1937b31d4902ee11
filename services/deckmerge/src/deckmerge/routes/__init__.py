"""HTTP routes for the deck merge service."""
