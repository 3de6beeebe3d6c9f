"""Real-time responses — Server-Sent Events."""
