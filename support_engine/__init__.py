"""
Support Engine

IT support ticketing back office with:
- Category registry with severity weights
- Priority tiers from impact, scope and urgency
- Ticket lifecycle state machine with status history
- Fire-and-forget notification dispatch
- Inbound email replies as ticket comments
"""

__version__ = "0.1.0"
