# seed_categories.py
# Run: python3 seed_categories.py
#
# Inserts the intake form's categories into the Category table
# - subcategories come from catalog.CATEGORY_SUBCATEGORIES
# - safe to re-run: existing names are skipped unless MERGE_SUBCATEGORIES is on,
#   in which case missing subcategories are appended in order

from typing import Dict, List

from app import app, db, Category
from catalog import PRODUCT_CATEGORIES, CATEGORY_SUBCATEGORIES

DRY_RUN = False              # True = just print what would change
MERGE_SUBCATEGORIES = True   # False = never touch existing rows


def _clean(names: List[str]) -> List[str]:
    """Trim, drop blanks and duplicates, keep first-seen order."""
    seen = set()
    cleaned = []
    for n in names or []:
        n = (n or "").strip()
        if n and n not in seen:
            seen.add(n)
            cleaned.append(n)
    return cleaned


def _planned() -> Dict[str, List[str]]:
    return {name: _clean(CATEGORY_SUBCATEGORIES.get(name, [])) for name in PRODUCT_CATEGORIES}


def seed(dry_run: bool = DRY_RUN, merge: bool = MERGE_SUBCATEGORIES):
    created = 0
    merged = 0
    skipped = 0

    for name, subcategories in _planned().items():
        existing = Category.query.filter_by(name=name).first()

        if existing is None:
            if dry_run:
                print(f"[DRY] create {name} -> {subcategories}")
            else:
                db.session.add(Category(name=name, subcategories=subcategories))
            created += 1
            continue

        current = list(existing.subcategories or [])
        missing = [s for s in subcategories if s not in current]
        if not merge or not missing:
            skipped += 1
            continue

        if dry_run:
            print(f"[DRY] merge {name} += {missing}")
        else:
            # reassign so the JSON column is marked dirty
            existing.subcategories = current + missing
        merged += 1

    if not dry_run:
        db.session.commit()

    return created, merged, skipped


def main():
    with app.app_context():
        created, merged, skipped = seed()

        print("✅ Seeding finished")
        print(f"Inserted: {created}")
        print(f"Merged: {merged}")
        print(f"Skipped: {skipped}")


if __name__ == "__main__":
    main()
