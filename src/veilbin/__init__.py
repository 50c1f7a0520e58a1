"""Veilbin: a zero-knowledge store for client-encrypted pastes and discussions."""

__version__ = "0.1.0"
