"""
Storage package — users, volunteers and emergency requests.

Modules:
    models  — dataclasses, enums and request lifecycle rules
    base    — abstract async Storage contract
    memory  — dictionary-backed backend with optional seed data
"""
