import os

from apscheduler.schedulers.background import BackgroundScheduler

from navhub.extensions import login_throttle


scheduler = BackgroundScheduler()


def run_throttle_cleanup(app):
    removed = login_throttle.cleanup()
    if removed:
        app.logger.debug("Removed %s expired login throttle window(s)", removed)


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", False):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = app.config["THROTTLE_CLEANUP_INTERVAL_MINUTES"]
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_throttle_cleanup,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="login_throttle_cleanup",
            replace_existing=True,
        )
        scheduler.start()
