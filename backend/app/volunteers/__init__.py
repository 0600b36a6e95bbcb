"""
Volunteer matching & notification package.

Modules:
    models      — transient notification / delivery structures
    matcher     — haversine radius search over available volunteers
    messages    — alert text template
    dispatcher  — concurrent delivery with timeout + retry, result aggregation
    channels    — delivery channel implementations (SMS)
"""
