"""Game domain services: state machine, answer ledger, timer and leaderboard.

This package contains the core game mechanics. HTTP routes and socket
handlers import from here, keeping transport concerns (and change
notifications) out of the engine. Every function expects to run inside a
Flask application context and talks to the store through ``db.session``.
"""
