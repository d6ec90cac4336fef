"""
One-time migration of options written by the legacy WDCS plugin.
"""

from datetime import datetime

from ..logger import logger, log_event
from .store import OptionStore

MIGRATION_COMPLETED = "erp_sync_migration_completed"
MIGRATION_DATE = "erp_sync_migration_date"
MIGRATED_OPTIONS_COUNT = "erp_sync_migrated_options_count"

LEGACY_PREFIX = "wdcs_"
CURRENT_PREFIX = "erp_sync_"

# legacy option name -> current option name
LEGACY_OPTION_MAP = {
    # API client
    "wdcs_api_username": "erp_sync_api_username",
    "wdcs_api_password": "erp_sync_api_password",
    "wdcs_api_wsdl": "erp_sync_api_wsdl",
    "wdcs_api_force_location": "erp_sync_api_force_location",
    "wdcs_api_timeout": "erp_sync_api_timeout",
    "wdcs_api_debug": "erp_sync_api_debug",
    "wdcs_api_soap_version": "erp_sync_api_soap_version",
    # Debug artifacts
    "wdcs_last_raw_excerpt": "erp_sync_last_raw_excerpt",
    "wdcs_last_raw_xml": "erp_sync_last_raw_xml",
    "wdcs_last_products_xml": "erp_sync_last_products_xml",
    "wdcs_last_request_xml": "erp_sync_last_request_xml",
    "wdcs_last_soap_fault": "erp_sync_last_soap_fault",
    "wdcs_last_request_headers": "erp_sync_last_request_headers",
    "wdcs_last_response_headers": "erp_sync_last_response_headers",
    "wdcs_last_infocards_meta": "erp_sync_last_infocards_meta",
    # Sync service
    "wdcs_last_sync": "erp_sync_last_sync",
    # Coupon cron
    "wdcs_cron_enabled": "erp_sync_cron_enabled",
    "wdcs_cron_interval": "erp_sync_cron_interval",
    "wdcs_cron_last_result": "erp_sync_cron_last_result",
    # Security
    "wdcs_ip_whitelist": "erp_sync_ip_whitelist",
    "wdcs_rate_limit_enabled": "erp_sync_rate_limit_enabled",
    "wdcs_rate_limit_max": "erp_sync_rate_limit_max",
    "wdcs_encryption_key": "erp_sync_encryption_key",
    # Webhook
    "wdcs_webhook_url": "erp_sync_webhook_url",
    "wdcs_webhook_enabled": "erp_sync_webhook_enabled",
    "wdcs_webhook_secret": "erp_sync_webhook_secret",
    "wdcs_webhook_events": "erp_sync_webhook_events",
}


async def migrate_legacy_options(store: OptionStore) -> int:
    """
    Copy legacy options to their current names.

    An option is copied only when the legacy option exists and the current
    one does not, so settings made after the upgrade are never overwritten.
    Runs at most once; the completion flag is stored with the date and the
    number of copied options.

    Args:
        store: Option store holding both legacy and current options

    Returns:
        Number of copied options (0 if the migration already ran)
    """
    if await store.get(MIGRATION_COMPLETED, False):
        return 0

    migrated_count = 0
    for old_name, new_name in LEGACY_OPTION_MAP.items():
        if not await store.exists(old_name) or await store.exists(new_name):
            continue
        await store.set(new_name, await store.get(old_name))
        migrated_count += 1
        logger.debug(f"Migrated option {old_name} -> {new_name}")

    cron_interval = await store.get("erp_sync_cron_interval", "")
    if isinstance(cron_interval, str) and cron_interval.startswith(LEGACY_PREFIX):
        await store.set(
            "erp_sync_cron_interval",
            CURRENT_PREFIX + cron_interval[len(LEGACY_PREFIX) :],
        )

    await store.set(MIGRATION_COMPLETED, True)
    await store.set(MIGRATION_DATE, datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    await store.set(MIGRATED_OPTIONS_COUNT, migrated_count)

    log_event(
        "Options migrated from WDCS to ERPSync", {"migrated_count": migrated_count}
    )
    return migrated_count
