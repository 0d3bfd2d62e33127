"""Credential and model settings."""
