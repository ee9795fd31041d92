# Supabase tables: users, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, references auth.users.id)
- display_name: text (not null)
- avatar_url: text (nullable)
- created_at: timestamp (default: now())

Only the display fields are read here; profile editing lives outside the
group competition engine.
"""

USERS_TABLE = "users"
