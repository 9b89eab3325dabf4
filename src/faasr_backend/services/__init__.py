"""Orchestration services: fork readiness, workflow upload and registration status."""
