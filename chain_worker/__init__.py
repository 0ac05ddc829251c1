"""Resilient JSON-RPC access layer for the blockchain indexing worker"""
