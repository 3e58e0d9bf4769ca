"""Realtime delivery and client-side synchronization for PairChat."""
