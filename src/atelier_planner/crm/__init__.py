"""Clients and projects (lead -> prospect -> client)."""
