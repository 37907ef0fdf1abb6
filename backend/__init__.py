"""
Bug Grid API - FastAPI backend serving bug reports stored in Supabase.

Provides the list endpoint the grid queries in server mode, summary
stats, CSV export and the AI bug chat.
"""
