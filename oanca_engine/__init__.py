"""OANCA buy-side pricing engine and fingerprint replication matcher."""
