"""
Services layer - Business logic goes here.
Keep services focused on specific domains (lifecycle, access, filtering, storage).

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Authorization decisions live in capabilities.py only
- Status rules live in status_workflow.py only
"""
