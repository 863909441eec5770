"""
Bracket voting services.

Pure bracket logic (generation, advancement, tally, ranking) lives in
modules with no database access; bracket_service wires them to SQLModel.
"""
