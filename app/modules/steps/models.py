# Supabase tables: step_entries
# This file documents the expected database schema
# Step entries are written by the steps API; this module only aggregates them

"""
Expected Supabase table structure:

step_entries:
- id: uuid (primary key)
- user_id: uuid (foreign key to auth.users.id, not null)
- date: date (not null) - the calendar day the steps were walked
- step_count: integer (not null, >= 0)
- distance_meters: double precision (nullable)
- source: text (nullable)
- recorded_at: timestamp (default: now())
"""

STEP_ENTRIES_TABLE = "step_entries"
