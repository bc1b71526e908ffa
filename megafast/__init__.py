"""Megafast HR backend."""
