"""Freshdesk directory sync.

Pages through Freshdesk agents, roles and groups, maps them onto a
normalized resource graph, and derives role/group membership grants from the
per-agent ``role_ids`` / ``group_ids`` lists.
"""
