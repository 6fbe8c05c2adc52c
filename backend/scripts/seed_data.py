"""
Seed Data Script - Creates default withdrawal policies
Run: python -m scripts.seed_data [--force]
"""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fundplan.config.settings import settings
from fundplan.domain.models import WithdrawalConfig
from fundplan.domain.enums import ModuleType, RecordStatus
from fundplan.repositories.mongo_client import create_client, create_indexes
from fundplan.repositories.withdrawal_config_repo import WithdrawalConfigRepository
from fundplan.utils.time import utc_now

# Every module: withdraw from SUBMITTED within 24h, 3 tries, reviewer approval
DEFAULT_TIME_LIMIT_HOURS = 24
DEFAULT_MAX_ATTEMPTS = 3


def default_configs():
    now = utc_now()
    return [
        WithdrawalConfig(
            module_type=module_type,
            allowed_statuses=[RecordStatus.SUBMITTED],
            time_limit_hours=DEFAULT_TIME_LIMIT_HOURS,
            max_attempts=DEFAULT_MAX_ATTEMPTS,
            require_approval=True,
            updated_at=now,
            updated_by="seed"
        )
        for module_type in ModuleType
    ]


def seed_withdrawal_configs(repo: WithdrawalConfigRepository, force: bool = False) -> int:
    """Insert defaults for modules without a policy (all modules with force)"""
    created = 0
    for config in default_configs():
        if not force and repo.get_config(config.module_type) is not None:
            print(f"Config exists, skipping: {config.module_type.value}")
            continue
        repo.upsert_config(config)
        created += 1
        print(f"Saved withdrawal config: {config.module_type.value}")
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed default withdrawal policies")
    parser.add_argument("--force", action="store_true", help="Overwrite existing policies")
    args = parser.parse_args()

    print("=== Seeding database ===")
    print("-" * 40)

    client = create_client(settings)
    try:
        db = client[settings.mongo_db]
        create_indexes(db)
        created = seed_withdrawal_configs(WithdrawalConfigRepository(db), force=args.force)
    finally:
        client.close()

    print("-" * 40)
    print(f"Done! {created} config(s) written.")


if __name__ == "__main__":
    main()
