"""
Community snapshot feature package.

Walks the Discord roster, cross-references it against the Supabase points
ledger and produces the CSV membership snapshot used for offline audits.
Domain models, repositories, pipeline stages, services and jobs for the
snapshot all live in this slice.
"""
