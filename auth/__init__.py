"""auth/ -- Who may operate the door: rotating possession tokens and directory credentials.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from door/ or notify/. main.py wires auth/ into the engine.
"""
