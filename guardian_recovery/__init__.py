"""
Guardian Recovery
=================
Client for a guardian-based social account-recovery registry on Casper.

Components:
- identity.codec: public key -> account hash, named-state key names
- protocol: typed argument schemas and the action encoder
- execution: deploy building, submission and confirmation
- state.reader: registry record reads
- services.recovery_service: write-action facade
"""

__version__ = "0.1.0"
