"""Docmost gateway: REST and JSON-RPC tool surface over the Docmost API."""
