"""Catalog authorization: privilege checks for catalog operations against a remote privilege store."""
