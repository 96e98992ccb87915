"""Orbit API: engagement economy backend."""
