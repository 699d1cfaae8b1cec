"""
Sephirots — Community Platform Backend
========================================
Discussion forums, community governance, gamified badges/points/quests,
a reward exchange, donations, and themed "quantum" recommendations.
All derived display state (tiers, progress, affordability, resonance scores)
is computed by a pure engine package so it can be tested without I/O.

Package layout::

    sephirots/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Shared presentation constants
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings + catalog seeder
    ├── engine/
    │   ├── badges.py      # Tier ranking + collection ordering
    │   ├── quests.py      # Typed requirement goals + progress
    │   ├── points.py      # Affordability + points-tier progression
    │   ├── recommendations.py  # Resonance scoring heuristic
    │   ├── governance.py  # Vote tallies → status transitions
    │   ├── reactions.py   # Reaction summaries + toggle consumption
    │   └── donations.py   # Donation tier table
    ├── services/          # DB-backed operations (one module per domain)
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine / config / JWT identity injection
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
