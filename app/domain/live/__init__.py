"""
Live streaming domain logic.

Includes:
- stream: Stream sessions, viewers and ingest credentials.
- recording: Recording lifecycle and provider asset reconciliation.
- live_domain: Wiring between the two.
"""
