"""
Run the shift alert worker: `python main.py`.

The web app is served separately with `uvicorn app.api:app`.
"""
import asyncio

from worker.main import main as run_worker


if __name__ == "__main__":
    asyncio.run(run_worker())
