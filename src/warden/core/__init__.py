"""Warden core: errors, shared types, configuration and interfaces."""
