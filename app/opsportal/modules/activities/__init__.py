"""
Business-facing activity log keyed by (related_table, related_id).
"""
