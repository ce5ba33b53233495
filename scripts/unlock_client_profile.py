"""
Unlock a client's profile from the command line.

Runs the same admin approval the dashboard uses: the client must have
submitted the onboarding questionnaire (Discovery state PENDING_REVIEW).
The client is emailed that the Application Tracker is now active.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging_config import configure_logging
from config.settings import Settings
from domain.errors import PipelineError
from repositories.client import create_supabase_client
from repositories.client_repository import SupabaseClientRepository
from repositories.onboarding_repository import SupabaseOnboardingRepository
from services.email_sender import build_email_sender
from services.notification_service import NotificationDispatcher
from services.onboarding_service import OnboardingService

logger = logging.getLogger(__name__)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Approve a client's onboarding and unlock their profile",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Unlock as the ops admin
  python unlock_client_profile.py 6f1c... --admin-id ops-admin

  # Only show the current Discovery status
  python unlock_client_profile.py 6f1c... --status-only
        """
    )

    parser.add_argument(
        "client_id",
        help="Id of the registered client"
    )

    parser.add_argument(
        "--admin-id",
        default="cli",
        help="Admin id stamped into profile_unlocked_by (default: cli)"
    )

    parser.add_argument(
        "--notes",
        default=None,
        help="Admin notes stored with the onboarding record"
    )

    parser.add_argument(
        "--status-only",
        action="store_true",
        help="Print the Discovery status without unlocking"
    )

    args = parser.parse_args()

    configure_logging()
    settings = Settings.from_env()
    supabase = create_supabase_client(settings.supabase_url, settings.supabase_key)
    service = OnboardingService(
        clients=SupabaseClientRepository(supabase),
        onboarding=SupabaseOnboardingRepository(supabase),
        notifier=NotificationDispatcher(build_email_sender(settings), settings),
        settings=settings,
    )

    try:
        if args.status_only:
            status = service.get_status(args.client_id)
        else:
            status = service.approve_onboarding(args.client_id, args.admin_id, args.notes).status
    except PipelineError as exc:
        print(f"[ERROR] {exc.message}")
        return 1

    print("=" * 50)
    print("DISCOVERY STATUS")
    print("=" * 50)
    for key, value in status.to_dict().items():
        print(f"{key + ':':<24} {value}")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(main())
