"""
Constants used across the TeamForge store and repositories.
"""

import os

# Collection names (one persisted list of records each)
USERS = "users"
TEAMS = "teams"
TEAM_MEMBERSHIPS = "team_memberships"
PLAYER_PROFILES = "player_profiles"
EVENTS = "events"
GAME_CONFIRMATIONS = "game_confirmations"
AVAILABILITY = "availability"
GAME_STATS = "game_stats"
TEAM_GAME_STATS = "team_game_stats"
SEASON_STATS = "season_stats"
TEAM_SEASON_STATS = "team_season_stats"
LINEUPS = "lineups"
REGISTRATION_KEYS = "registration_keys"
INVITATIONS = "invitations"
NOTES = "notes"
MESSAGE_READ_STATUS = "message_read_status"
LEGACY_TEAM_STATS = "team_stats"

ALL_COLLECTIONS = [
    USERS,
    TEAMS,
    TEAM_MEMBERSHIPS,
    PLAYER_PROFILES,
    EVENTS,
    GAME_CONFIRMATIONS,
    AVAILABILITY,
    GAME_STATS,
    TEAM_GAME_STATS,
    SEASON_STATS,
    TEAM_SEASON_STATS,
    LINEUPS,
    REGISTRATION_KEYS,
    INVITATIONS,
    NOTES,
    MESSAGE_READ_STATUS,
]

# Team defaults
DEFAULT_LEAGUE = "Basketball League"
DEFAULT_SEASON = "2024-25"
DEFAULT_TEAM_COLOR = "#6366f1"

# Lineups hold at most one player per court position
MAX_LINEUP_SIZE = 5

# Registration keys
REGISTRATION_KEY_LENGTH = 8
REGISTRATION_KEY_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
REGISTRATION_KEY_EXPIRY_DAYS = int(os.getenv("REGISTRATION_KEY_EXPIRY_DAYS", "30"))
INVITATION_CODE_LENGTH = 8

# Notes seeded by early demo builds; removed by the demo_notes migration
DEMO_NOTE_CONTENTS = [
    "Great practice today team! Remember to work on those free throws.",
    "Coach, what time is the game on Saturday?",
    "Don't forget to bring your water bottles and arrive 30 minutes early for warm-up.",
]
