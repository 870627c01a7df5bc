# -*- coding: utf-8 -*-
"""
Roster sync configuration. All tunable parameters live here.
"""

CONFIG = {
    # REST endpoint of the remote store (PostgREST-compatible)
    "rest": {
        "url": "",
        "anon_key": "",
        "get_cache_ms": 30000,  # TTL of the client-side GET cache
        "timeout": 10.0,
    },

    "roster": {
        "location_id": None,
        "range_length": 7,        # days in the visible window
        "debounce_ms": 550,       # quiet period before a flush
        "saved_pulse_ms": 650,    # how long the "saved" signal stays up
        "max_shows_per_day": 4,
        # day note applied when a crew member covers every show of the day
        "full_day_note": "Full Day",
        "default_shift": {"start": "13:45:00", "end": "21:45:00"},
    },

    # Remote resource names
    "resources": {
        "crew": "crew_roster",
        "shows": "work_roster_shows",
        "assignments": "work_roster_assignments",
        "shifts": "work_roster_shifts",
        "day_hours": "v_work_roster_day_hours",
    },

    # Crew select lists: extended first, reduced when the store lacks a column
    "crew_columns": {
        "extended": "id,crew_name,home_department,status,location_id,is_lead,weekly_off_days",
        "reduced": "id,crew_name,home_department,status,location_id",
    },
}
