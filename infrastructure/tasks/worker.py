"""Convenience entry point for running the payment-events Celery worker.

Most deployments will invoke the standard Celery CLI
(`celery -A infrastructure.tasks worker -Q payment-events,notifications`),
but keeping a small script makes local testing or Procfile-style runners
straightforward.
"""
from __future__ import annotations

from .config.celery import celery_app, NOTIFICATIONS_QUEUE, PAYMENT_EVENTS_QUEUE


def main() -> None:
    celery_app.worker_main(
        argv=[
            "worker",
            "--hostname=payments@%h",
            f"--queues={PAYMENT_EVENTS_QUEUE},{NOTIFICATIONS_QUEUE}",
            "--loglevel=INFO",
        ]
    )


if __name__ == "__main__":
    main()
