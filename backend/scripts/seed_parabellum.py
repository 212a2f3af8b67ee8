#!/usr/bin/env python
"""Idempotent seed script for services and the initial administrator.

Usage:
    python backend/scripts/seed_parabellum.py               # seed normally
    python backend/scripts/seed_parabellum.py --show-roles  # print role -> default permission counts
    python backend/scripts/seed_parabellum.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_parabellum.py --validate    # check stored permission overrides against the catalog
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, inspect

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from parabellum import create_app, get_db  # type: ignore
from parabellum.models.identity import Base, Service, User
import parabellum.models.customer  # noqa: F401
import parabellum.models.quote  # noqa: F401
import parabellum.models.audit  # noqa: F401
from parabellum.constants.permissions import ROLE_ADMIN, ROLE_PERMISSIONS, ROLE_LABELS, unknown_permission_codes

DEFAULT_SERVICES = [
    ('Commercial', 'Sales and customer relations'),
    ('Technique', 'Field operations and interventions'),
    ('Comptabilite', 'Accounting and finance'),
    ('Ressources Humaines', 'Human resources'),
]


def ensure_schema(session):
    engine = session.get_bind()
    if not inspect(engine).has_table('users'):
        # Bootstrap fallback; in a real environment prefer `alembic upgrade head`
        Base.metadata.create_all(engine)
        print('[INFO] Created schema from models')


def ensure_services(session):
    existing = {s.name for s in session.execute(select(Service)).scalars().all()}
    created = 0
    for name, description in DEFAULT_SERVICES:
        if name not in existing:
            session.add(Service(name=name, description=description))
            created += 1
    session.flush()
    return created


def ensure_initial_admin(session):
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@parabellum.local').lower()
    existing_admin = session.execute(select(User).where(User.email==admin_email)).scalar_one_or_none()
    if existing_admin:
        return False
    user = User(email=admin_email, first_name='Admin', last_name='Parabellum', role=ROLE_ADMIN)
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    print(f"[INFO] Created initial admin user {admin_email} with temporary password.")
    return True


def find_override_problems(session):
    problems = []
    for user in session.execute(select(User).where(User.permission_overrides.is_not(None))).scalars().all():
        for code in unknown_permission_codes(user.permission_overrides or []):
            problems.append(f"User {user.email} override references unknown permission: {code}")
    return problems


def print_role_summary():
    name_w = max(len(label) for label in ROLE_LABELS.values())
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 6)")
    print('-' * (name_w + 40))
    for role, perms in ROLE_PERMISSIONS.items():
        sample = ', '.join(sorted(perms)[:6])
        print(f"{ROLE_LABELS[role].ljust(name_w)} | {str(len(perms)).rjust(5)} | {sample}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed services and the initial administrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_parabellum.py\n  dry run: seed_parabellum.py --dry-run\n  show roles: seed_parabellum.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role default permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--validate', action='store_true', help='Validate stored permission overrides; exits non-zero on problems')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            ensure_schema(session)
            created_s = ensure_services(session)
            created_admin = ensure_initial_admin(session)
            if args.validate:
                problems = find_override_problems(session)
                if problems:
                    print('\n[VALIDATION] FAIL:')
                    for p in problems:
                        print(' -', p)
                    session.rollback()
                    sys.exit(2)
                print('[VALIDATION] OK: all permission overrides reference catalog codes.')
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Services would create: {created_s}, admin would create: {created_admin}")
            else:
                session.commit()
                print(f"[DONE] Services created: {created_s}, admin created: {created_admin}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
