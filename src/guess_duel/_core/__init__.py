# Area: Core
"""
Reconciliation core.

This package contains:
- Guess validation and the level table
- History ledger and turn arbiter (owned state)
- Notification classification
- The reconciler state machine and its notice board
"""
