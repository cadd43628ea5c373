"""
Services Layer

Scheduling engine operations that:
- Accept a fully hydrated event (teams, fields, time slots, matches)
- Return result objects or mutate the given event in place
- Do NOT depend on HTTP request/response objects
- Do NOT persist anything
"""
