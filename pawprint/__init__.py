"""
Pawprint — Points Economy for a Pet Community
==============================================
Members earn points for taking part (daily check-in, posts, timeline
entries, photos), spend them on cosmetic items for their mini character
and home page, and climb a public leaderboard.

Package layout::

    pawprint/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Economy limits, labels, level table
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (users, journal, inventory, counters)
    ├── engine/
    │   ├── actions.py     # Point values, daily caps, one-time rules
    │   └── catalog.py     # Catalogue provider + default items
    ├── services/
    │   ├── points_service.py     # Ledger: award, admin grant, reads
    │   ├── purchase_service.py   # Reserve → commit → compensate saga
    │   └── inventory_service.py  # Equip snapshot + inventory listing
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT identity, engine/config/catalog deps
        ├── rate_limit.py  # Sliding-window limiter + 429 dependency
        └── routes/        # points, admin, shop endpoints
"""

__version__ = "0.1.0"
