"""
Battery Station Backend
=======================

This is the Python package for the backend API.

HOW IT'S ORGANIZED:
------------------
- models/    = Data structures (what does a station / order look like?)
- services/  = Workers (talk to ChargeNow and Energo, cache, poll)
- routers/   = API endpoints (the doors into our app)
- utils/     = Small helpers (validation, value parsing)
- main.py    = Puts it all together and starts the server

Author: CUUB Battery Team
"""
