from dagster import Definitions, ScheduleDefinition

from pipelines.tradeeval_pipelines.jobs.recalibrate import recalibrate

daily_recalibration = ScheduleDefinition(
    job=recalibrate,
    cron_schedule="0 2 * * *",
    execution_timezone="UTC",
)

defs = Definitions(
    jobs=[recalibrate],
    schedules=[daily_recalibration],
)
