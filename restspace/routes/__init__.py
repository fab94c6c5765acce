"""
API Routes Package

This package contains FastAPI route handlers for the application.
Each module defines routes for a specific feature area:

- auth.py: Passkey ceremonies (register/login options and verify), session, logout
- thoughts.py: Feed routes (list, post, edit)

Routes are registered in main.py using FastAPI's router system,
which allows for modular organization and shared route prefixes.
"""
