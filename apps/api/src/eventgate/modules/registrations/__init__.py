"""
Registrations Module

Handles the registration lifecycle and checkpoint check-in:
1. Registration with a signed, expiring check-in token (issued once)
2. Organizer approval or rejection of pending registrations
3. Checkpoint check-in by volunteers, idempotent under repeated scans
4. Checkpoint gating and a scan audit log

API Endpoints:
- POST /events/{event_id}/registrations - Register for an event
- GET /registrations/{id} - Registration snapshot
- GET /registrations/{id}/token - Owner's check-in token
- GET /events/{event_id}/checkpoints - Checkpoint state
- POST /check-in - Scan a token at a checkpoint
- GET /events/{event_id}/registrations - List registrations (organizer)
- POST /registrations/{id}/approve - Approve (organizer)
- POST /registrations/{id}/reject - Reject (organizer)
- POST /events/{event_id}/checkpoints/{checkpoint}/unlock|lock - Gate checkpoints (organizer)
- GET /scan-logs - Recent scan attempts (organizer)

Status Flow:
    pending -> approved -> checked-in
    pending -> rejected (terminal)
"""

from .admin_router import router as admin_router
from .router import router

__all__ = ["router", "admin_router"]
