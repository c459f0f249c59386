"""
Script to create an organization together with its first admin.
Run this after migrations to bootstrap a tenant without going through the UI.
"""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskflow.core.database import SessionLocal
from taskflow.core.errors import TaskflowError
from taskflow.services.identity import register_user


def create_organization(organization_name: str, email: str, password: str, name: str = "Admin User"):
    """Create an organization and its admin user."""
    db = SessionLocal()
    try:
        admin = register_user(
            db,
            name=name,
            email=email,
            password=password,
            organization_name=organization_name,
        )
        print(f"✅ Organization created successfully!")
        print(f"   Organization: {admin.organization.name}")
        print(f"   Join code: {admin.organization.code}")
        print(f"   Admin: {admin.email}")
    except TaskflowError as e:
        print(f"❌ Error creating organization: {e.message} ({e.code.value})")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Create organization with an admin user')
    parser.add_argument('--organization', required=True, help='Organization name')
    parser.add_argument('--email', required=True, help='Admin email')
    parser.add_argument('--password', required=True, help='Admin password')
    parser.add_argument('--name', default='Admin User', help='Admin full name')

    args = parser.parse_args()
    create_organization(args.organization, args.email, args.password, args.name)
