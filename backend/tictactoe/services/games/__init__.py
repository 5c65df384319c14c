"""Game domain services: rules, seats, the session registry and the reaper.

This package holds the game logic imported by HTTP routes and socket
handlers, keeping transport concerns separated from core game mechanics.
"""
