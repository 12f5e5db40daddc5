"""
Scrumboard server package.

A FastAPI service that exposes scrum records and email/password auth backed
by Supabase, and serves the built single-page frontend.
"""
