bind = "127.0.0.1:8000"
# Change fan-out and presence state live in process memory, so one worker
# serves every realtime subscriber.
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
