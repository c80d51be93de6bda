"""HTTP control plane — FastAPI app and environment routes."""
