"""
Pydantic models.

- domain/ - core entities (detections, subscriptions, history)
- requests/ - API request bodies
- responses/ - API response payloads
"""
