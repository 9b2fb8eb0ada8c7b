"""intake_server — FastAPI surface over in-memory intake sessions."""
