"""
Celery tasks for the sitemap_engine app.

The regeneration task is the only writer of the sitemap cache. It is
scheduled through django-celery-beat according to ``SitemapConfig`` and can
be triggered on demand with ``regenerate_now``.
"""
import logging
import sys

from celery import shared_task
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone

from sitemap_engine.models import SitemapConfig
from sitemap_engine.services.cache import app_cache
from sitemap_engine.services.generator import Generator
from sitemap_engine.services.runtime import SitemapSettings
from sitemap_engine.signals import sitemap_generated

logger = logging.getLogger(__name__)

TASK_NAME = "sitemap_engine.tasks.regenerate_sitemaps"
PERIODIC_TASK_NAME = "Regenerate Sitemaps"


@shared_task(
    name=TASK_NAME,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={'max_retries': 3},
)
def regenerate_sitemaps():
    """
    Celery task to regenerate every sitemap output.

    Purges the cache, rebuilds the XML sitemap (cached), the per-module files
    and, when enabled, the HTML sitemap. Statistics are saved on the
    configuration and ``sitemap_generated`` is sent.

    Returns:
        str: A message indicating the result of the task execution.
    """
    logger.info(f"[{timezone.now()}] Running sitemap regeneration task...")

    config = SitemapConfig.load()
    settings = SitemapSettings.from_model(config)
    if not settings.enabled:
        message = "Sitemap module is disabled, nothing to regenerate"
        logger.info(message)
        return message

    generator = Generator()
    generator.invalidate_cache()

    result = generator.generate_xml(settings=settings)
    if not result.ok:
        message = f"Sitemap regeneration stopped: {result.error}"
        logger.error(message)
        return message

    files = generator.generate_all(settings=settings)
    if settings.html_enabled:
        generator.generate_html(settings=settings)

    # update() skips post_save, so the schedule is not re-registered
    SitemapConfig.objects.filter(pk=config.pk).update(
        last_generated=timezone.now(),
        url_count=result.url_count,
    )

    warnings = result.warnings + files.warnings
    sitemap_generated.send(
        sender=Generator,
        url_count=result.url_count,
        files=[f.filename for f in files.files],
        warnings=warnings,
    )

    result_message = (f"Sitemap regeneration completed at {timezone.now()}: "
                      f"{result.url_count} URLs, {len(files.files)} module files")
    if warnings:
        result_message += f", {len(warnings)} warnings"
    logger.info(result_message)
    return result_message


def regenerate_now():
    """
    Queue an immediate regeneration.

    Returns:
        str: The id of the queued task
    """
    async_result = regenerate_sitemaps.delay()
    logger.info(f"Queued sitemap regeneration {async_result.id}")
    return async_result.id


def _crontab_for(frequency: str):
    from django_celery_beat.models import CrontabSchedule

    fields = {
        'daily': {'day_of_week': '*', 'day_of_month': '*'},
        'weekly': {'day_of_week': '0', 'day_of_month': '*'},
        'monthly': {'day_of_week': '*', 'day_of_month': '1'},
    }.get(frequency, {'day_of_week': '*', 'day_of_month': '*'})

    schedule, _ = CrontabSchedule.objects.get_or_create(
        minute='0',
        hour='0',
        month_of_year='*',
        **fields
    )
    return schedule


def register_periodic_task():
    """
    Register the regeneration task with Celery Beat.

    Creates or replaces the periodic task according to ``SitemapConfig``.
    Hourly runs use an interval schedule; daily, weekly and monthly runs use
    a crontab at midnight. A disabled module or schedule removes the task.
    """
    try:
        # Import here to avoid circular imports
        from django_celery_beat.models import IntervalSchedule, PeriodicTask

        config = SitemapConfig.load()

        PeriodicTask.objects.filter(name=PERIODIC_TASK_NAME).delete()

        if not (config.enabled and config.schedule_enabled):
            logger.info("Sitemap schedule disabled, periodic task removed")
            return

        schedule_kwargs = {}
        if config.update_frequency == 'hourly':
            schedule_kwargs['interval'], _ = IntervalSchedule.objects.get_or_create(
                every=1,
                period=IntervalSchedule.HOURS,
            )
        else:
            schedule_kwargs['crontab'] = _crontab_for(config.update_frequency)

        PeriodicTask.objects.create(
            name=PERIODIC_TASK_NAME,
            task=TASK_NAME,
            enabled=True,
            description="Automatically regenerate the XML and HTML sitemaps",
            **schedule_kwargs
        )

        logger.info(f"Registered periodic sitemap regeneration with {config.update_frequency} frequency")
    except Exception as e:
        logger.error(f"Failed to register periodic task: {e}")


def cancel_scheduled() -> int:
    """
    Remove the periodic regeneration task.

    Returns:
        int: Number of periodic tasks removed
    """
    from django_celery_beat.models import PeriodicTask

    deleted, _ = PeriodicTask.objects.filter(name=PERIODIC_TASK_NAME).delete()
    logger.info(f"Cancelled scheduled sitemap regeneration ({deleted} removed)")
    return deleted


def schedule_status() -> dict:
    """
    Describe the regeneration schedule and the last run.

    Returns:
        dict: scheduled, frequency, last_run_at, total_run_count, last_generated, url_count
    """
    from django_celery_beat.models import PeriodicTask

    config = SitemapConfig.load()
    task = PeriodicTask.objects.filter(name=PERIODIC_TASK_NAME).first()
    return {
        'scheduled': bool(task and task.enabled),
        'frequency': config.update_frequency,
        'last_run_at': task.last_run_at if task else None,
        'total_run_count': task.total_run_count if task else 0,
        'last_generated': config.last_generated,
        'url_count': config.url_count,
    }


@receiver(post_save, sender=SitemapConfig)
def update_periodic_task(sender, instance, **kwargs):
    """
    Re-register the periodic task and purge cached output when the configuration is saved.
    """
    app_cache().invalidate()
    register_periodic_task()


def ready():
    """
    Register the periodic task at startup, except while running migrations.
    """
    if any(command in sys.argv for command in ('migrate', 'makemigrations', 'test')):
        return

    register_periodic_task()
