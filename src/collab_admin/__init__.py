"""Supplier collaboration administration for Microsoft 365 tenants.

Provisions supplier workspaces (group, team, site, guest invitations) and
reports guest users by their inferred home domain.
"""
