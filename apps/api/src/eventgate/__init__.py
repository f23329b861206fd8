"""EventGate API - registration lifecycle and checkpoint check-in."""
