# scripts/seed_catalog.py
import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import select
from badger.db import SessionLocal
from badger.models import CatalogBadge, PromotionTemplate

BADGES = [
    # title,                          category,          level
    ("Cloud Architecture",            "technical",       "gold"),
    ("Distributed Systems",           "technical",       "gold"),
    ("Code Review Practice",          "technical",       "silver"),
    ("Automated Testing",             "technical",       "silver"),
    ("CI/CD Pipelines",               "technical",       "silver"),
    ("Observability",                 "technical",       "bronze"),
    ("Team Onboarding",               "organizational",  "silver"),
    ("Recruitment Panel",             "organizational",  "gold"),
    ("Mentoring",                     "softskilled",     "silver"),
    ("Public Speaking",               "softskilled",     "gold"),
]

TEMPLATES = [
    # name,                 path,          from, to,   rules
    ("Technical J1 -> J2",  "technical",   "J1", "J2", [{"category": "technical", "level": "bronze", "count": 2}]),
    ("Technical S1 -> S2",  "technical",   "S1", "S2", [{"category": "technical", "level": "silver", "count": 6},
                                                       {"category": "any", "level": "gold", "count": 1}]),
    ("Technical S2 -> S3",  "technical",   "S2", "S3", [{"category": "technical", "level": "gold", "count": 1},
                                                       {"category": "any", "level": "gold", "count": 1}]),
    ("Management M1 -> M2", "management",  "M1", "M2", [{"category": "organizational", "level": "silver", "count": 2},
                                                       {"category": "softskilled", "level": "silver", "count": 2}]),
]

def upsert_badge(db, title, category, level):
    row = db.execute(select(CatalogBadge).where(CatalogBadge.title == title)).scalar_one_or_none()
    if row:
        if row.category != category or row.level != level:
            row.category = category
            row.level = level
            row.version = (row.version or 1) + 1
    else:
        db.add(CatalogBadge(title=title, category=category, level=level))
    db.commit()

def upsert_template(db, name, path, from_level, to_level, rules):
    row = db.execute(select(PromotionTemplate).where(PromotionTemplate.name == name)).scalar_one_or_none()
    if row:
        row.path, row.from_level, row.to_level, row.rules = path, from_level, to_level, rules
    else:
        db.add(PromotionTemplate(name=name, path=path, from_level=from_level, to_level=to_level, rules=rules))
    db.commit()

def main():
    db = SessionLocal()
    try:
        for title, category, level in BADGES:
            upsert_badge(db, title, category, level)
        for name, path, f, t, rules in TEMPLATES:
            upsert_template(db, name, path, f, t, rules)
        print("Catalog seed OK")
    finally:
        db.close()

if __name__ == "__main__":
    main()
