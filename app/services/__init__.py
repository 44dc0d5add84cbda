"""Clients and flows talking to SIMKL."""
