"""Kernel services. Each takes a Session and flushes; none commits."""
