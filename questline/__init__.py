"""
Questline: quest generation, validation and tiered memory for a wellness RPG
"""
