"""
Services module for business logic separation.

Redirect resolution, click analytics, admin link management and the
admin brute-force limiter live here, separate from the FastAPI routers
and the database models.
"""
