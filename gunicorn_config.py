"""Gunicorn configuration to ensure a placement is seeded in each worker."""
import sys

# Gunicorn config variables
bind = "0.0.0.0:8080"
workers = 2
timeout = 120
worker_class = "sync"
preload_app = False  # Don't preload - let each worker import fresh

def post_worker_init(worker):
    """Called just after a worker has initialized the application."""
    try:
        from app import seed_state

        app = worker.wsgi
        controller = app.config.get('controller') if app is not None and hasattr(app, 'config') else None
        if controller is None:
            print(f"[Worker {worker.pid}] WARNING: No controller found in app.config", file=sys.stderr, flush=True)
            return
        seed_state(controller)
        print(
            f"[Worker {worker.pid}] Placement seeded: {controller.placement.as_dict()}",
            file=sys.stderr,
            flush=True,
        )
    except Exception as e:
        print(f"[Worker {worker.pid}] ERROR in post_worker_init: {e}", file=sys.stderr, flush=True)
        import traceback
        traceback.print_exc(file=sys.stderr)
