"""Turn/action processing.

Validation and resolution live here so HTTP routes, the battle session and
tests all drive a battle through the same pipeline.
"""
