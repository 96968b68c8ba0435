"""
paraclaim.core: shared types, crypto, configuration and the audit log.
"""
