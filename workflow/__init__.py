"""
Workflow core shared by the tournament service.

- Status state machines (tournament, category, registration)
- Error taxonomy
- Domain events
- Saga helper for cross-entity writes
"""
