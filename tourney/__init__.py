"""
Tournament Service - player registration and team allocation

Responsibilities:
- Tournament, category and team records
- Tournament/category lifecycle
- Player registrations and approval
- Auction and manual team assignment backed by the team budget ledger
"""
