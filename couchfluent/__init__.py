"""Fluent asyncio access layer over the CouchDB HTTP API."""
