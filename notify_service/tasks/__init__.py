"""Background task infrastructure using Taskiq and APScheduler.

- broker.py: taskiq-aio-pika broker (None when RabbitMQ is not configured)
- scheduler.py: APScheduler interval jobs for the retry and digest sweeps
- notifications/: the sweep task definitions

Run the worker to execute tasks:
    taskiq worker notify_service.tasks.broker:broker notify_service.tasks.notifications
"""
