import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Replace this process with uvicorn serving the stream API."""
  port = os.getenv("PORT", "8002")
  logger.info("Starting lessonstream on port %s...", port)
  # execvp keeps uvicorn as PID 1 so SIGTERM reaches it directly.
  args = ["uvicorn", "lessonstream.main:app", "--host", "0.0.0.0", "--port", port, "--no-server-header"]
  os.execvp("uvicorn", args)


if __name__ == "__main__":
  main()
