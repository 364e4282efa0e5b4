"""Adapters for host facts and external commands."""
