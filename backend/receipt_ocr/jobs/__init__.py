"""Durable OCR jobs: payload types, status store, producer and runner."""
