"""Pydantic schemas for requests, responses and stream events."""
