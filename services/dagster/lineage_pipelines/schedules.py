# =============================================================================
# Schedules - Periodic Lineage Refresh
# =============================================================================
# Lineage is a snapshot: it is refreshed on a fixed cadence rather than
# updated incrementally.
# =============================================================================

from dagster import ScheduleDefinition

from .jobs import rebuild_lineage_job

LINEAGE_REFRESH_CRON = "*/30 * * * *"

lineage_refresh_schedule = ScheduleDefinition(
    name="lineage_refresh_schedule",
    job=rebuild_lineage_job,
    cron_schedule=LINEAGE_REFRESH_CRON,
    description="Rebuild the lineage graph every 30 minutes",
)
