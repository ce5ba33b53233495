"""
Pipeline report - how many leads sit in each pipeline status, and which
approved leads hold a registration token that has already expired.
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging_config import configure_logging
from config.settings import Settings
from domain.lead import LeadRecord
from domain.pipeline import PipelineStatus
from domain.time import to_iso_utc, utc_now
from repositories.client import create_supabase_client
from repositories.contracts import LeadStore
from repositories.lead_repository import SupabaseLeadRepository

PAGE_SIZE = 100


def count_by_status(leads: LeadStore) -> Dict[PipelineStatus, int]:
    return {
        status: leads.list(pipeline_status=status.value, page=1, limit=1).total
        for status in PipelineStatus
    }


def expired_registrations(leads: LeadStore) -> List[LeadRecord]:
    """Approved leads whose unredeemed token is past its expiry."""

    now = utc_now()
    expired: List[LeadRecord] = []
    page = 1
    while True:
        result = leads.list(pipeline_status=PipelineStatus.APPROVED.value, page=page, limit=PAGE_SIZE)
        for lead in result.items:
            if lead.registration_token and lead.token_expires_at and lead.token_expires_at <= now:
                expired.append(lead)
        if page * PAGE_SIZE >= result.total or not result.items:
            return expired
        page += 1


def print_report(leads: LeadStore) -> None:
    counts = count_by_status(leads)
    total = sum(counts.values())

    print("=" * 50)
    print("PIPELINE STATUS")
    print("=" * 50)
    for status, count in counts.items():
        print(f"{status.value + ':':<26} {count}")
    print(f"{'Total:':<26} {total}")
    print("=" * 50)

    expired = expired_registrations(leads)
    print(f"\nApproved leads with an expired registration link: {len(expired)}")
    print("-" * 50)
    for lead in expired:
        print(f"{lead.id}  {lead.email:<32} expired {to_iso_utc(lead.token_expires_at)}")
    print("-" * 50)


def main() -> int:
    parser = argparse.ArgumentParser(description="Print lead counts per pipeline status")
    parser.parse_args()

    configure_logging()
    settings = Settings.from_env()
    supabase = create_supabase_client(settings.supabase_url, settings.supabase_key)
    print_report(SupabaseLeadRepository(supabase))
    return 0


if __name__ == "__main__":
    sys.exit(main())
