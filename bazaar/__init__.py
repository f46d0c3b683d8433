"""
Volunteer Bazaar — Transactional Domain Layer
==============================================
The data and domain core of a volunteer/organization marketplace: users,
opportunities, applications, conversations, notifications and a light
gamification layer (points, hours, badges).  Web handlers call these
operations in-process; every multi-table write commits or rolls back as a
single transaction.

Package layout::

    bazaar/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Badge ladder, status copy, dashboard links
    ├── errors.py          # Domain error taxonomy
    ├── records.py         # Frozen output dataclasses (camelCase to_dict)
    ├── __main__.py        # Bootstrap: schema + demo data
    ├── database/
    │   ├── engine.py      # DataContext: pool, transactions, async bridge
    │   ├── models.py      # All ORM models (13 tables)
    │   └── seed.py        # Demo data seeder
    └── services/
        ├── user_service.py          # Users, skills, causes, volunteer listing
        ├── stats_service.py         # Points, hours, badges, leaderboard
        ├── opportunity_service.py   # Opportunity catalog
        ├── application_service.py   # Application lifecycle + side effects
        ├── messaging_service.py     # Conversations and messages
        ├── notification_service.py  # Per-user notifications
        └── report_service.py        # Moderation reports
"""

__version__ = "0.1.0"
