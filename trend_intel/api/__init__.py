"""HTTP routers exposing the pipeline operations."""
