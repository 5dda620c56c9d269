"""HTTP gateway: FastAPI app, routers and process-wide dependencies."""
