"""
Heirloom accounts backend.

OAuth login, extended profiles, approvers, recipients and recipient-addressed
notes on a relational store, served through a FastAPI application.
"""
